"""Keep only the newest session of a user.

Two overlapping calls for the same user may try to delete the same stale
sessions. Deletes are idempotent and a not-found outcome counts as done, so no
lock is taken; the user converges to one session.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Protocol

import structlog

from .client import DeleteOutcome
from .schemas import Session

logger = structlog.get_logger(__name__)

_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


class SessionStore(Protocol):
    async def list_sessions(self, user_id: str) -> list[Session]: ...

    async def delete_session(self, session_id: str) -> DeleteOutcome: ...


@dataclass
class PruneResult:
    user_id: str
    kept: str | None = None
    deleted: list[str] = field(default_factory=list)
    already_gone: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)


def newest_first(sessions: list[Session]) -> list[Session]:
    """Stable sort by creation time, newest first.

    The remote is asked for descending order already; this only corrects a
    remote that ignored the request. Sessions without a timestamp sort last.
    """
    return sorted(
        sessions,
        key=lambda session: _as_aware(session.created_at) if session.created_at else _OLDEST,
        reverse=True,
    )


def _as_aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


async def enforce_unique_session(store: SessionStore, user_id: str) -> PruneResult:
    """List the user's sessions and delete every one except the newest.

    A failure to list propagates. Individual delete failures are logged and
    collected in the result; they never fail the call.
    """
    sessions = newest_first(await store.list_sessions(user_id))
    result = PruneResult(user_id=user_id)

    if len(sessions) <= 1:
        result.kept = sessions[0].id if sessions else None
        logger.info("unique_session_noop", user_id=user_id, session_count=len(sessions))
        return result

    latest, stale = sessions[0], sessions[1:]
    result.kept = latest.id
    logger.info("unique_session_pruning", user_id=user_id, kept=latest.id, stale_count=len(stale))

    outcomes = await asyncio.gather(
        *(store.delete_session(session.id) for session in stale),
        return_exceptions=True,
    )
    for session, outcome in zip(stale, outcomes):
        if isinstance(outcome, BaseException):
            if not isinstance(outcome, Exception):
                raise outcome
            logger.warning("session_delete_failed", user_id=user_id, session_id=session.id, error=str(outcome))
            result.failed[session.id] = str(outcome)
        elif outcome is DeleteOutcome.NOT_FOUND:
            result.already_gone.append(session.id)
        else:
            result.deleted.append(session.id)

    logger.info(
        "unique_session_done",
        user_id=user_id,
        kept=result.kept,
        deleted=result.deleted,
        already_gone=result.already_gone,
        failed=list(result.failed),
    )
    return result
