class ImportPipelineError(Exception):
    """Base class for failures that abort a song import."""


class DownloadError(ImportPipelineError):
    """The source audio could not be fetched or converted."""


class StorageError(ImportPipelineError):
    """An object could not be stored, read or addressed."""
