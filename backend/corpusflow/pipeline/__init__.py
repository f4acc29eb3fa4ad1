"""Import pipeline and progress reporting."""

from corpusflow.pipeline.importer import ImportPipeline, format_wait_info
from corpusflow.pipeline.progress import ProgressRecorder, ProgressReporter, sanitize_preview

__all__ = [
    "ImportPipeline",
    "format_wait_info",
    "ProgressReporter",
    "ProgressRecorder",
    "sanitize_preview",
]
