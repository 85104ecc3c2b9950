from metadata.reconcile import MetadataReconciler, ReconciliationResult
from metadata.title_parser import parse_title
from metadata.types import BasicGuess, CandidateRecord, EnrichedMetadata, ReconciledMetadata

__all__ = [
    "BasicGuess",
    "CandidateRecord",
    "EnrichedMetadata",
    "MetadataReconciler",
    "ReconciledMetadata",
    "ReconciliationResult",
    "parse_title",
]
