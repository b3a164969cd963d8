"""
Poll API schemas.

Request/response models for the voter-facing /polls endpoints.
"""

from typing import List, Optional
from pydantic import BaseModel, Field


class PollResponse(BaseModel):
    """Response representing a Poll."""

    id: str = Field(..., description="Unique poll identifier")
    question: str = Field(..., description="Poll question")
    options: List[str] = Field(..., description="Ordered option labels; index is the choice id")
    closes_at: str = Field(..., description="Closing timestamp (ISO format, UTC)")
    processed_at: Optional[str] = Field(default=None, description="Processing timestamp")
    is_open: bool = Field(..., description="Whether the poll still accepts votes")


class OpenPollResponse(BaseModel):
    """Response for the open poll endpoint."""

    poll: Optional[PollResponse] = Field(
        default=None,
        description="The currently open poll (null between cycles)"
    )


class VoteRequest(BaseModel):
    """Request to cast or change a vote."""

    choice: int = Field(..., description="Zero-based option index")


class VoteResponse(BaseModel):
    """Response from a vote."""

    success: bool
    poll_id: str
    choice: int
    voted_at: Optional[str] = None


class OptionResult(BaseModel):
    """Vote count for one option."""

    index: int
    option: str
    votes: int = Field(default=0, ge=0)


class PollResultsResponse(BaseModel):
    """Response for the poll results endpoint."""

    poll_id: str
    question: str
    results: List[OptionResult] = Field(default_factory=list)
    total_votes: int = Field(default=0, ge=0)
    leader: Optional[str] = Field(
        default=None,
        description="Option currently winning under the tie-break rule (null with no votes)"
    )
    winner: Optional[str] = Field(
        default=None,
        description="Recorded winner once the poll has been processed"
    )
    is_open: bool


class RecordedResultResponse(BaseModel):
    """Recorded outcome of one processed poll."""

    poll_id: str
    question: str
    results: List[OptionResult] = Field(default_factory=list)
    total_votes: int = Field(default=0, ge=0)
    winner: str
    recorded_at: str


class PollHistoryResponse(BaseModel):
    """Response for the poll history endpoint."""

    results: List[RecordedResultResponse] = Field(default_factory=list)
    limit: int
