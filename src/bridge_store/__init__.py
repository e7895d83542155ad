"""Bridge storage layer: pluggable data store drivers for Bridge documents and blobs."""

__version__ = "0.1.0"
