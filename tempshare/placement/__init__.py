"""Object placement, streaming reads and the file share service."""
