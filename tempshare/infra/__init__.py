"""Infrastructure layer package.

Implements Port interfaces with concrete adapters (filesystem, S3/MinIO)
and hosts the sweep schedulers (in-process and Celery).
"""
