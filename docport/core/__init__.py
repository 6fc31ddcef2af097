"""Core batch processing module for docport.

Import the orchestrator from ``docport.core.orchestrator``.
"""

from docport.core.progress import CancellationToken, ProgressEvent, ProgressPhase
from docport.core.result import BatchResult
from docport.core.state import BatchJob, CandidateFile, ConversionTask, TaskStatus

__all__ = [
    "CancellationToken",
    "ProgressEvent",
    "ProgressPhase",
    "BatchResult",
    "BatchJob",
    "CandidateFile",
    "ConversionTask",
    "TaskStatus",
]
