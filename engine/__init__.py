from .errors import DownloadError, ImportPipelineError, StorageError

__all__ = [
    "DownloadError",
    "ImportPipelineError",
    "StorageError",
]
