"""Port interfaces - Layer boundary contracts.

    ObjectStoragePort - Object storage primitives used by placement and sweep
    ObjectWriter      - Streaming writer handed out by ObjectStoragePort
"""

from tempshare.ports.object_storage_port import ObjectStoragePort, ObjectWriter

__all__ = [
    "ObjectStoragePort",
    "ObjectWriter",
]
