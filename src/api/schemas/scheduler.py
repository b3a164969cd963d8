"""
Scheduler API schemas.

Supports the /scheduler/* control endpoints.
"""

from typing import Optional
from pydantic import BaseModel, Field


class SchedulerStartRequest(BaseModel):
    """Request to start the scheduler."""

    run_recovery: bool = Field(
        default=True,
        description="Whether to inspect story state on startup"
    )
    interval_seconds: Optional[float] = Field(
        default=None,
        gt=0,
        le=86400,
        description="Tick interval override (seconds)"
    )


class SchedulerStartResponse(BaseModel):
    """Response from scheduler start."""

    success: bool
    message: str
    recovery_stats: Optional[dict] = Field(
        default=None,
        description="Recovery statistics if inspection was run"
    )


class SchedulerStopRequest(BaseModel):
    """Request to stop the scheduler."""

    timeout: float = Field(
        default=30.0,
        ge=1.0,
        le=300.0,
        description="Maximum wait time for the current cycle to complete (seconds)"
    )


class SchedulerStopResponse(BaseModel):
    """Response from scheduler stop."""

    success: bool
    message: str


class CycleRunResponse(BaseModel):
    """Result of a manually triggered cycle."""

    success: bool
    outcome: str = Field(..., description="Cycle outcome (ADVANCED/BOOTSTRAPPED/POLL_OPEN/...)")
    processed_poll_id: Optional[str] = None
    chapter_id: Optional[str] = None
    next_poll_id: Optional[str] = None
    winner: Optional[str] = None
    error: Optional[str] = None


class CumulativeStats(BaseModel):
    """Cumulative cycle statistics."""

    total_runs: int = Field(default=0, description="Cycles run")
    succeeded: int = Field(default=0, description="Cycles that did not fail or skip")
    failed: int = Field(default=0, description="FAILED cycles")
    skipped: int = Field(default=0, description="SKIPPED cycles (reentrancy guard)")


class SchedulerStatusResponse(BaseModel):
    """Response from scheduler status endpoint."""

    scheduler_running: bool = Field(..., description="Whether the tick loop is running")
    state: str = Field(..., description="Scheduler state (STOPPED/RUNNING/STOPPING)")
    interval_seconds: float
    cycle_running: bool = Field(default=False, description="Whether a cycle is in progress")
    cumulative_stats: CumulativeStats = Field(
        default_factory=CumulativeStats,
        description="Cumulative cycle statistics"
    )
    last_outcome: Optional[str] = None
    last_error: Optional[str] = None
    last_run_at: Optional[str] = None
