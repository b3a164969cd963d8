"""
API Schemas package.

Pydantic models for request/response validation.
"""

from .polls import (
    PollResponse,
    OpenPollResponse,
    VoteRequest,
    VoteResponse,
    OptionResult,
    PollResultsResponse,
    RecordedResultResponse,
    PollHistoryResponse,
)
from .chapters import (
    ChapterResponse,
    ChapterListResponse,
)
from .scheduler import (
    SchedulerStartRequest,
    SchedulerStartResponse,
    SchedulerStopRequest,
    SchedulerStopResponse,
    CycleRunResponse,
    CumulativeStats,
    SchedulerStatusResponse,
)

__all__ = [
    "PollResponse",
    "OpenPollResponse",
    "VoteRequest",
    "VoteResponse",
    "OptionResult",
    "PollResultsResponse",
    "RecordedResultResponse",
    "PollHistoryResponse",
    "ChapterResponse",
    "ChapterListResponse",
    "SchedulerStartRequest",
    "SchedulerStartResponse",
    "SchedulerStopRequest",
    "SchedulerStopResponse",
    "CycleRunResponse",
    "CumulativeStats",
    "SchedulerStatusResponse",
]
