"""Session workflow: starting, stopping and summarising learning sessions."""

from __future__ import annotations

import uuid
from collections.abc import Iterator
from contextlib import contextmanager, suppress
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol

from .repository import Repository
from .session import Session, SessionError

_RECENT_LIMIT = 5

NOT_STARTED = "not-started"
IN_PROGRESS = "in-progress"
COMPLETED = "completed"
SKIPPED = "skipped"


@contextmanager
def _reraise(action: str) -> Iterator[None]:
    """Prefix a storage failure with what was being attempted."""
    try:
        yield
    except SessionError as exc:
        raise SessionError(f"{action}: {exc}") from exc


@dataclass
class PlanChunk:
    """The parts of a plan chunk that session tracking needs."""

    id: str
    duration: int
    status: str


class PlanService(Protocol):
    """Plan operations used to check plans and update chunk statuses."""

    def get(self, plan_id: str) -> Any:
        """Return the plan with ``plan_id``; raise if it does not exist."""
        ...

    def get_chunk(self, plan_id: str, chunk_id: str) -> PlanChunk:
        """Return one chunk of a plan; raise if it does not exist."""
        ...

    def update_chunk_status(self, plan_id: str, chunk_id: str, new_status: str) -> None:
        """Set the status of a chunk."""
        ...


@dataclass
class StartRequest:
    """Parameters for starting a session."""

    plan_id: str
    chunk_id: str = ""
    notes: str = ""


@dataclass
class StopRequest:
    """Parameters for stopping the active session."""

    notes: str = ""
    artifacts: list[str] = field(default_factory=list)


@dataclass
class Status:
    """The active session, if any, and the most recent sessions."""

    active: Session | None
    recent: list[Session]
    has_more: bool


@dataclass
class ChunkStats:
    """Session count and completed minutes for one chunk."""

    session_count: int = 0
    total_duration: int = 0


def _completed_minutes(sessions: list[Session]) -> int:
    return sum(s.duration for s in sessions if not s.is_active())


class SessionService:
    """Business rules for sessions on top of a repository and an optional plan service."""

    def __init__(self, repo: Repository, plan_service: PlanService | None = None) -> None:
        self._repo = repo
        self._plan_service = plan_service

    def start(self, request: StartRequest) -> Session:
        """Start a new session; only one session may be active at a time."""
        if not request.plan_id:
            raise SessionError("plan ID cannot be empty")

        with _reraise("failed to check for active session"):
            active = self._repo.get_active()
        if active is not None:
            raise SessionError(
                f"active session already exists: {active.id} (plan: {active.plan_id}). "
                "Stop it with 'samedi stop'"
            )

        if self._plan_service is not None:
            try:
                self._plan_service.get(request.plan_id)
            except Exception as exc:
                raise SessionError(f"plan not found: {request.plan_id}") from exc

        now = datetime.now()
        session = Session(
            id=str(uuid.uuid4()),
            plan_id=request.plan_id,
            chunk_id=request.chunk_id,
            start_time=now,
            notes=request.notes,
            created_at=now,
        )
        with _reraise("invalid session"):
            session.validate()
        with _reraise("failed to create session"):
            self._repo.create(session)

        if self._plan_service is not None and request.chunk_id:
            with suppress(Exception):
                chunk = self._plan_service.get_chunk(request.plan_id, request.chunk_id)
                if chunk.status == NOT_STARTED:
                    self._plan_service.update_chunk_status(
                        request.plan_id, request.chunk_id, IN_PROGRESS
                    )

        return session

    def stop(self, request: StopRequest) -> Session:
        """Complete the active session, adding any notes and artifacts."""
        with _reraise("failed to get active session"):
            session = self._repo.get_active()
        if session is None:
            raise SessionError(
                "no active session to stop. Start one with 'samedi start <plan-id>'"
            )

        with _reraise("failed to complete session"):
            session.complete(datetime.now())
        if request.notes:
            session.add_notes(request.notes)
        for artifact in request.artifacts:
            session.add_artifact(artifact)

        with _reraise("invalid session after update"):
            session.validate()
        with _reraise("failed to update session"):
            self._repo.update(session)

        if self._plan_service is not None and session.chunk_id:
            with suppress(Exception):
                self._complete_chunk_if_done(session.plan_id, session.chunk_id)

        return session

    def get_active(self) -> Session | None:
        """The active session, or None."""
        with _reraise("failed to get active session"):
            return self._repo.get_active()

    def get_status(self) -> Status:
        """The active session and recent sessions.

        With an active session, recent sessions come from its plan;
        otherwise they come from every plan.
        """
        with _reraise("failed to get active session"):
            active = self._repo.get_active()
        plan_id = active.plan_id if active is not None else ""
        with _reraise("failed to get recent sessions"):
            recent = self._repo.list(plan_id, _RECENT_LIMIT)
        return Status(active=active, recent=recent, has_more=len(recent) >= _RECENT_LIMIT)

    def list(self, plan_id: str, limit: int) -> list[Session]:
        """Sessions of a plan, newest first; a limit of 0 means all."""
        if not plan_id:
            raise SessionError("plan ID cannot be empty")
        with _reraise("failed to list sessions"):
            return self._repo.list(plan_id, limit)

    def list_all(self) -> list[Session]:
        """Every session across all plans, newest first."""
        with _reraise("failed to list sessions"):
            return self._repo.list("", 0)

    def get_by_plan(self, plan_id: str) -> list[Session]:
        """All sessions of a plan."""
        if not plan_id:
            raise SessionError("plan ID cannot be empty")
        with _reraise("failed to get sessions for plan"):
            return self._repo.get_by_plan(plan_id)

    def get_session_count(self, plan_id: str) -> int:
        """Number of sessions recorded for a plan."""
        return len(self.get_by_plan(plan_id))

    def get_total_duration(self, plan_id: str) -> int:
        """Minutes spent on a plan, counting completed sessions only."""
        return _completed_minutes(self.get_by_plan(plan_id))

    def get_chunk_sessions(self, plan_id: str, chunk_id: str) -> list[Session]:
        """Sessions of a plan that belong to one chunk."""
        if not plan_id:
            raise SessionError("plan ID cannot be empty")
        if not chunk_id:
            raise SessionError("chunk ID cannot be empty")
        with _reraise("failed to get sessions"):
            sessions = self._repo.get_by_plan(plan_id)
        return [s for s in sessions if s.chunk_id == chunk_id]

    def get_chunk_stats(self, plan_id: str, chunk_id: str) -> ChunkStats:
        """Session count and completed minutes for one chunk."""
        sessions = self.get_chunk_sessions(plan_id, chunk_id)
        return ChunkStats(
            session_count=len(sessions),
            total_duration=_completed_minutes(sessions),
        )

    def _complete_chunk_if_done(self, plan_id: str, chunk_id: str) -> None:
        """Mark a chunk completed once its sessions cover its planned duration."""
        assert self._plan_service is not None
        chunk = self._plan_service.get_chunk(plan_id, chunk_id)
        if chunk.status in (COMPLETED, SKIPPED):
            return
        sessions = self._repo.get_by_plan(plan_id)
        spent = _completed_minutes([s for s in sessions if s.chunk_id == chunk_id])
        if spent >= chunk.duration:
            self._plan_service.update_chunk_status(plan_id, chunk_id, COMPLETED)