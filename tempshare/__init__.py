"""tempshare: temporary file sharing without a metadata store.

A shared file's reference is ``<uuidv7>.<ext>`` whose timestamp is the
instant the file expires. Placement, reads and the expiry sweep all
derive from that one value.
"""

__version__ = "0.1.0"
