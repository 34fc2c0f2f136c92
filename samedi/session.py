"""Learning sessions: the record of time spent on a plan or one of its chunks."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta

_MINUTE = timedelta(minutes=1)


class SessionError(Exception):
    """Raised when a session is invalid or an operation on it fails."""


class SessionNotFoundError(SessionError, LookupError):
    """Raised when a session with the requested ID does not exist."""

    def __init__(self, session_id: str) -> None:
        super().__init__(f"session not found: {session_id}")
        self.session_id = session_id


def _now_like(reference: datetime) -> datetime:
    """Return the current time, aware or naive to match ``reference``."""
    return datetime.now(reference.tzinfo) if reference.tzinfo else datetime.now()


def _whole_minutes(delta: timedelta) -> int:
    """Whole minutes in ``delta``, truncated toward zero."""
    return int(delta / _MINUTE)


@dataclass
class Session:
    """A tracked learning session linked to a plan and optionally a chunk.

    A session without an ``end_time`` is active.
    """

    id: str = ""
    plan_id: str = ""
    chunk_id: str = ""
    start_time: datetime | None = None
    end_time: datetime | None = None
    duration: int = 0
    notes: str = ""
    artifacts: list[str] = field(default_factory=list)
    cards_created: int = 0
    created_at: datetime | None = None

    def validate(self) -> None:
        """Raise :class:`SessionError` if a field is missing or inconsistent."""
        if not self.id:
            raise SessionError("session ID cannot be empty")
        if not self.plan_id:
            raise SessionError("plan ID cannot be empty")
        if self.start_time is None:
            raise SessionError("start time cannot be zero")
        if self.created_at is None:
            raise SessionError("created_at cannot be zero")

        if self.end_time is not None:
            if self.end_time < self.start_time:
                raise SessionError("end time cannot be before start time")
            if self.end_time == self.start_time:
                raise SessionError("end time cannot equal start time")
            expected = self.calculate_duration()
            if self.duration != expected:
                raise SessionError(
                    f"duration mismatch: stored {self.duration} minutes, "
                    f"calculated {expected} minutes"
                )
        elif self.duration != 0:
            raise SessionError(
                f"active session should have zero duration, got {self.duration}"
            )

        if self.cards_created < 0:
            raise SessionError(
                f"cards created cannot be negative, got {self.cards_created}"
            )

    def is_active(self) -> bool:
        """True while the session has no end time."""
        return self.end_time is None

    def calculate_duration(self) -> int:
        """Minutes between start and end; 0 for an active session."""
        if self.end_time is None or self.start_time is None:
            return 0
        return _whole_minutes(self.end_time - self.start_time)

    def elapsed_minutes(self) -> int:
        """Minutes elapsed so far if active, otherwise the stored duration."""
        if self.end_time is None:
            if self.start_time is None:
                return 0
            return _whole_minutes(_now_like(self.start_time) - self.start_time)
        return self.duration

    def elapsed_time(self) -> str:
        """Elapsed time as ``"1h 05m"`` or ``"42m"``."""
        hours, mins = divmod(self.elapsed_minutes(), 60)
        if hours > 0:
            return f"{hours}h {mins:02d}m"
        return f"{mins}m"

    def complete(self, end_time: datetime) -> None:
        """End the session at ``end_time`` and record its duration."""
        if not self.is_active():
            raise SessionError("session is already complete")
        if self.start_time is not None and end_time < self.start_time:
            raise SessionError("end time cannot be before start time")
        self.end_time = end_time
        self.duration = self.calculate_duration()

    def add_notes(self, notes: str) -> None:
        """Append notes on a new line."""
        self.notes = f"{self.notes}\n{notes}" if self.notes else notes

    def add_artifact(self, artifact: str) -> None:
        """Record a URL or file path; empty strings are ignored."""
        if artifact:
            self.artifacts.append(artifact)