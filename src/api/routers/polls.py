"""
Poll router for the voter-facing API.

Endpoints:
- GET /polls/open - The currently open poll, if any
- POST /polls/{poll_id}/vote - Cast or change a vote
- GET /polls/{poll_id}/results - Live tally (plus the recorded winner once processed)
- GET /polls/history - Recorded results of processed polls, newest first

Voters are identified by a client_id cookie. A voter without one gets a
fresh UUID on their first vote; a repeat vote overwrites the previous one.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Cookie, HTTPException, Query, Response

from src.scheduler.poll_cycle import pick_winner
from src.story.entities import Poll, PollResult, generate_uuid
from src.story.errors import InvalidVoteError, PollNotFoundError, StoreError

from ..schemas.polls import (
    OpenPollResponse,
    OptionResult,
    PollHistoryResponse,
    PollResponse,
    PollResultsResponse,
    RecordedResultResponse,
    VoteRequest,
    VoteResponse,
)
from .._engine_state import get_engine

logger = logging.getLogger(__name__)

router = APIRouter()

CLIENT_ID_COOKIE = "client_id"
CLIENT_ID_MAX_AGE = 365 * 24 * 60 * 60


def _to_recorded_response(result: PollResult) -> RecordedResultResponse:
    return RecordedResultResponse(
        poll_id=result.poll_id,
        question=result.question,
        results=[
            OptionResult(index=entry.index, option=entry.option, votes=entry.count)
            for entry in result.results
        ],
        total_votes=result.total_votes,
        winner=result.winner,
        recorded_at=result.recorded_at,
    )


def _to_response(poll: Poll, now: str) -> PollResponse:
    return PollResponse(
        id=poll.id,
        question=poll.question,
        options=poll.options,
        closes_at=poll.closes_at,
        processed_at=poll.processed_at,
        is_open=poll.is_open(now),
    )


@router.get("/open", response_model=OpenPollResponse)
def get_open_poll():
    """Get the poll currently accepting votes (null between cycles)."""
    store = get_engine().store

    try:
        poll = store.get_open_poll()
    except StoreError as e:
        logger.error(f"[PollAPI] Failed to load open poll: {e}")
        raise HTTPException(status_code=503, detail="Story store unavailable")

    if poll is None:
        return OpenPollResponse(poll=None)
    return OpenPollResponse(poll=_to_response(poll, store.now_iso()))


@router.get("/history", response_model=PollHistoryResponse)
def get_poll_history(limit: int = Query(default=20, ge=1, le=100)):
    """Get the recorded results of processed polls, newest first."""
    try:
        results = get_engine().store.list_poll_results(limit=limit)
    except StoreError as e:
        logger.error(f"[PollAPI] Failed to load poll history: {e}")
        raise HTTPException(status_code=503, detail="Story store unavailable")

    return PollHistoryResponse(
        results=[_to_recorded_response(result) for result in results],
        limit=limit,
    )


@router.post("/{poll_id}/vote", response_model=VoteResponse)
def cast_vote(
    poll_id: str,
    request: VoteRequest,
    response: Response,
    client_id: Optional[str] = Cookie(default=None),
):
    """
    Cast a vote on an open poll.

    Returns:
    - 404 if the poll does not exist
    - 400 if the poll is closed or the choice is out of range
    """
    store = get_engine().store

    try:
        poll = store.get_poll(poll_id)
    except StoreError as e:
        logger.error(f"[PollAPI] Failed to load poll {poll_id}: {e}")
        raise HTTPException(status_code=503, detail="Story store unavailable")

    if poll is None:
        raise HTTPException(status_code=404, detail=f"Poll not found: {poll_id}")

    if not poll.is_open(store.now_iso()):
        raise HTTPException(status_code=400, detail="This poll has closed")

    if not client_id:
        client_id = generate_uuid()
        response.set_cookie(
            key=CLIENT_ID_COOKIE,
            value=client_id,
            max_age=CLIENT_ID_MAX_AGE,
            httponly=True,
            samesite="lax",
        )

    try:
        vote = store.upsert_vote(poll_id, client_id, request.choice)
    except InvalidVoteError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except PollNotFoundError:
        raise HTTPException(status_code=404, detail=f"Poll not found: {poll_id}")
    except StoreError as e:
        logger.error(f"[PollAPI] Failed to record vote on {poll_id}: {e}")
        raise HTTPException(status_code=503, detail="Story store unavailable")

    return VoteResponse(
        success=True,
        poll_id=vote.poll_id,
        choice=vote.choice,
        voted_at=vote.voted_at,
    )


@router.get("/{poll_id}/results", response_model=PollResultsResponse)
def get_poll_results(poll_id: str):
    """Get the current vote counts for a poll, in option order."""
    store = get_engine().store

    try:
        poll = store.get_poll(poll_id)
        if poll is None:
            raise HTTPException(status_code=404, detail=f"Poll not found: {poll_id}")
        tally = store.tally_votes(poll_id)
        recorded = store.get_poll_result(poll_id)
    except PollNotFoundError:
        raise HTTPException(status_code=404, detail=f"Poll not found: {poll_id}")
    except StoreError as e:
        logger.error(f"[PollAPI] Failed to tally poll {poll_id}: {e}")
        raise HTTPException(status_code=503, detail="Story store unavailable")

    total = sum(entry.count for entry in tally)
    leader = pick_winner(tally).option if total > 0 else None

    return PollResultsResponse(
        poll_id=poll.id,
        question=poll.question,
        results=[
            OptionResult(index=entry.index, option=entry.option, votes=entry.count)
            for entry in tally
        ],
        total_votes=total,
        leader=leader,
        winner=recorded.winner if recorded else None,
        is_open=poll.is_open(store.now_iso()),
    )
