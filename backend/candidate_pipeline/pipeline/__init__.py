"""Stage components of the candidate intake and processing pipeline."""

from .final_selects import FinalSelectsCurator
from .intake import IntakeSequencer, IntakeState
from .monitor import MonitorState, PollTask, ProcessingMonitor
from .navigation import Navigate, Stage
from .notices import NoticeBoard
from .results import ResultsReview
from .shortlist import ShortlistSubmitter

__all__ = [
    "FinalSelectsCurator",
    "IntakeSequencer",
    "IntakeState",
    "MonitorState",
    "Navigate",
    "NoticeBoard",
    "PollTask",
    "ProcessingMonitor",
    "ResultsReview",
    "ShortlistSubmitter",
    "Stage",
]
