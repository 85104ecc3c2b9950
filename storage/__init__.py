from storage.local import LocalObjectStorage, ObjectStorage, StorageError

__all__ = ["LocalObjectStorage", "ObjectStorage", "StorageError"]
