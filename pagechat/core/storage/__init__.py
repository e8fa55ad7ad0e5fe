from .blob_store import BlobStore, BlobStoreError

__all__ = ["BlobStore", "BlobStoreError"]
