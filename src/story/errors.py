"""
Story engine exceptions.

Only StoreError (and its subclasses) aborts a poll cycle. Generation failures
never surface as exceptions; the generator degrades to fallback content.
"""


class StoryEngineError(Exception):
    """Base exception for all story engine errors."""
    pass


class StoreError(StoryEngineError):
    """
    Raised when the datastore is unreachable or rejects an operation.

    Wraps the underlying driver exception (available as __cause__).
    """
    pass


class PollNotFoundError(StoreError):
    """Raised when a requested poll does not exist."""

    def __init__(self, poll_id: str):
        self.poll_id = poll_id
        super().__init__(f"Poll not found: {poll_id}")


class InvalidPollError(StoreError):
    """
    Raised when a poll would violate its shape constraints.

    Examples:
    - Fewer than two options
    - Empty question
    - Negative closing offset
    """
    pass


class InvalidVoteError(StoreError):
    """Raised when a vote choice is outside the poll's option range."""

    def __init__(self, poll_id: str, choice: int, option_count: int):
        self.poll_id = poll_id
        self.choice = choice
        self.option_count = option_count
        super().__init__(
            f"Invalid choice {choice} for poll {poll_id}: "
            f"must be between 0 and {option_count - 1}"
        )
