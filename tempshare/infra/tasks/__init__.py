"""Celery tasks (Redis broker) for running the sweep out of process."""
