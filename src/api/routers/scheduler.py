"""
Scheduler router for story loop control APIs.

Endpoints under /scheduler/* for status, manual runs, start and stop.
Protected by the X-API-Key dependency when API_AUTH_ENABLED=true.
"""

from fastapi import APIRouter, HTTPException

from ..schemas.scheduler import (
    CumulativeStats,
    CycleRunResponse,
    SchedulerStartRequest,
    SchedulerStartResponse,
    SchedulerStatusResponse,
    SchedulerStopRequest,
    SchedulerStopResponse,
)
from .._engine_state import get_engine


router = APIRouter()


@router.get("/status", response_model=SchedulerStatusResponse)
def get_scheduler_status():
    """
    Get scheduler status.

    Returns:
    - scheduler_running: Whether the tick loop is active
    - cycle_running: Whether a cycle is in progress right now
    - cumulative_stats: Cycle statistics (total, succeeded, failed, skipped)
    - last_outcome / last_error / last_run_at: Most recent cycle
    """
    status = get_engine().get_status()

    return SchedulerStatusResponse(
        scheduler_running=status["scheduler_running"],
        state=status["state"],
        interval_seconds=status["interval_seconds"],
        cycle_running=status["cycle_running"],
        cumulative_stats=CumulativeStats(
            total_runs=status["total_runs"],
            succeeded=status["succeeded"],
            failed=status["failed"],
            skipped=status["skipped"],
        ),
        last_outcome=status["last_outcome"],
        last_error=status["last_error"],
        last_run_at=status["last_run_at"],
    )


@router.post("/run-once", response_model=CycleRunResponse)
def run_cycle_once():
    """
    Run one poll cycle now (blocking).

    Never fails at the HTTP level: a failed cycle is reported in the body.
    """
    result = get_engine().run_cycle_once()
    return CycleRunResponse(success=result.succeeded, **result.to_dict())


@router.post("/start", response_model=SchedulerStartResponse)
def start_scheduler(request: SchedulerStartRequest = SchedulerStartRequest()):
    """
    Start the tick loop.

    Idempotent: If the scheduler is already running, returns success with message.
    """
    engine = get_engine()

    if engine.is_running:
        return SchedulerStartResponse(
            success=True,
            message="Scheduler is already running",
            recovery_stats=None,
        )

    try:
        recovery_stats = engine.start_scheduler(
            interval_seconds=request.interval_seconds,
            blocking=False,
            run_recovery=request.run_recovery,
        )
    except (RuntimeError, ValueError) as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to start scheduler: {str(e)}"
        )

    return SchedulerStartResponse(
        success=True,
        message="Scheduler started successfully",
        recovery_stats=recovery_stats if recovery_stats else None,
    )


@router.post("/stop", response_model=SchedulerStopResponse)
def stop_scheduler(request: SchedulerStopRequest = SchedulerStopRequest()):
    """
    Stop the tick loop gracefully.

    Waits for the current cycle to complete (no preemption).
    Idempotent: If the scheduler is already stopped, returns success.
    """
    engine = get_engine()

    if not engine.is_running:
        return SchedulerStopResponse(
            success=True,
            message="Scheduler is already stopped",
        )

    engine.stop(timeout=request.timeout)

    return SchedulerStopResponse(
        success=True,
        message="Scheduler stopped successfully",
    )
