"""Expiry: the UUIDv7 expiration codec, hourly buckets and the sweep."""
