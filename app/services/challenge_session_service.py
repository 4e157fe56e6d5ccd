"""
Challenge Session Service

Start, complete, cancel and look up a user's attempt at a challenge, plus the
in-progress listing that repairs sessions left behind by interrupted
completions.

The store offers single-statement writes only. Correctness rests on:
- the unique index on (user_id, challenge_id, is_active): a losing concurrent
  start re-reads the winner's row instead of failing
- completion writing the reflection before deactivating the session: the
  reflection is the durable record, and list_in_progress() deletes any session
  that still looks active while a reflection points at it
"""

from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from app.core.analytics import track_challenge_completed, track_challenge_started
from app.core.store import (
    SupabaseTableStore,
    UniqueConstraintError,
    eq,
    in_,
    is_null,
    not_null,
)
from app.models.challenge_sessions import (
    ChallengeSession,
    ChallengeSummary,
    CompletedChallengeStats,
    CompletionHistory,
    CompletionResult,
    InProgressChallenge,
    Reflection,
)
from app.services.challenge_catalog import ChallengeCatalog
from app.services.logger import logger
from app.services.session_events import SessionEventPublisher, session_event_publisher

SESSIONS_TABLE = "user_challenge_sessions"
REFLECTIONS_TABLE = "user_challenge_reflections"


class ChallengeSessionError(Exception):
    """Base class for challenge session lifecycle errors."""


class UnauthenticatedError(ChallengeSessionError):
    def __init__(self, message: str = "User not authenticated"):
        super().__init__(message)


class ReflectionValidationError(ChallengeSessionError):
    def __init__(
        self,
        message: str = "Share your thoughts on at least one reflection question",
    ):
        super().__init__(message)


class SessionConflictError(ChallengeSessionError):
    """A unique violation could not be resolved to an existing session. Retryable."""

    retryable = True


def clean_reflection_answers(answers: Optional[Dict[str, Any]]) -> Dict[str, str]:
    """Keep only questions with a non-blank answer, answers trimmed."""
    cleaned: Dict[str, str] = {}
    for question, answer in (answers or {}).items():
        if not question or not isinstance(answer, str):
            continue
        if answer.strip():
            cleaned[question] = answer.strip()
    return cleaned


def _active_filters(user_id: str, challenge_id: str) -> list:
    return [
        eq("user_id", user_id),
        eq("challenge_id", challenge_id),
        eq("is_active", True),
        is_null("completed_at"),
    ]


class ChallengeSessionService:
    """Service for the challenge session lifecycle"""

    def __init__(
        self,
        store: Optional[SupabaseTableStore] = None,
        catalog: Optional[ChallengeCatalog] = None,
        events: Optional[SessionEventPublisher] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store or SupabaseTableStore()
        self.catalog = catalog or ChallengeCatalog(self.store)
        self.events = events or session_event_publisher
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def _now(self) -> str:
        return self._clock().isoformat()

    def _require_user(self, user_id: Optional[str]) -> str:
        if not user_id:
            raise UnauthenticatedError()
        return user_id

    def _find_active_row(self, user_id: str, challenge_id: str) -> Optional[dict]:
        # Most recent first: if the unique index was ever bypassed, the newest wins
        rows = self.store.select(
            SESSIONS_TABLE,
            _active_filters(user_id, challenge_id),
            order="started_at",
            desc=True,
            limit=1,
        )
        return rows[0] if rows else None

    async def start_session(self, user_id: Optional[str], challenge_id: str) -> ChallengeSession:
        """
        Start (or resume) the user's session for a challenge.

        Idempotent: an existing active session is returned unchanged, and a
        start that loses the insert race returns the winner's session.

        Raises:
            UnauthenticatedError: no user
            SessionConflictError: insert collided but no active row could be re-read
        """
        user_id = self._require_user(user_id)

        existing = self._find_active_row(user_id, challenge_id)
        if existing:
            logger.info(
                f"Returning existing active challenge session {existing['id']} "
                f"for user {user_id}, challenge {challenge_id}"
            )
            return ChallengeSession(**existing)

        # Rows that would otherwise block the insert or the next completion:
        # active rows that already carry completed_at, and terminal rows
        self.store.delete(
            SESSIONS_TABLE,
            [
                eq("user_id", user_id),
                eq("challenge_id", challenge_id),
                eq("is_active", True),
                not_null("completed_at"),
            ],
        )
        self.store.delete(
            SESSIONS_TABLE,
            [
                eq("user_id", user_id),
                eq("challenge_id", challenge_id),
                eq("is_active", False),
            ],
        )

        try:
            row = self.store.insert(
                SESSIONS_TABLE,
                {
                    "user_id": user_id,
                    "challenge_id": challenge_id,
                    "started_at": self._now(),
                },
            )
        except UniqueConstraintError:
            logger.warning(
                f"Unique constraint on challenge session insert for user {user_id}, "
                f"challenge {challenge_id}; re-reading the active session"
            )
            winner = self._find_active_row(user_id, challenge_id)
            if not winner:
                raise SessionConflictError(
                    "Challenge session changed while starting. Please try again."
                )
            self.events.sessions_changed(user_id)
            return ChallengeSession(**winner)

        logger.info(
            f"Started challenge session {row['id']} for user {user_id}, challenge {challenge_id}"
        )
        self.events.sessions_changed(user_id)
        track_challenge_started(user_id, challenge_id, row["id"])

        return ChallengeSession(**row)

    async def complete_session(
        self,
        user_id: Optional[str],
        challenge_id: str,
        posted_anonymously: bool = False,
        reflection_answers: Optional[Dict[str, str]] = None,
    ) -> CompletionResult:
        """
        Complete the user's attempt at a challenge.

        Write order:
        1. delete old inactive rows (keeps the unique index free for step 4)
        2. locate the active session (best-effort)
        3. insert the reflection, linked to the session when one was found
        4. deactivate the session (best-effort, only if still active)

        A failure after step 3 leaves an active session with a reflection
        pointing at it; list_in_progress() deletes it on the next read.

        Raises:
            UnauthenticatedError: no user
            ReflectionValidationError: no non-blank answer; nothing is written
        """
        user_id = self._require_user(user_id)

        answers = clean_reflection_answers(reflection_answers)
        if not answers:
            raise ReflectionValidationError()

        # Read only: a failure here rejects the completion before any write
        previous = self.store.select(
            REFLECTIONS_TABLE,
            [eq("user_id", user_id), eq("challenge_id", challenge_id)],
            columns="id",
            limit=1,
        )
        is_repeat_completion = bool(previous)

        # Challenge metadata only prices the completion, it never blocks it
        points_resolved = True
        challenge = None
        try:
            challenge = self.catalog.get_by_id(challenge_id)
        except Exception as e:
            points_resolved = False
            logger.warning(
                f"Could not read challenge {challenge_id} for user {user_id}, "
                f"completing without points: {e}"
            )

        self.store.delete(
            SESSIONS_TABLE,
            [
                eq("user_id", user_id),
                eq("challenge_id", challenge_id),
                eq("is_active", False),
            ],
        )

        session_row = None
        try:
            session_row = self._find_active_row(user_id, challenge_id)
        except Exception as e:
            logger.warning(
                f"Could not look up active challenge session for user {user_id}, "
                f"challenge {challenge_id}, completing without it: {e}"
            )

        session_id = session_row["id"] if session_row else None

        reflection_row = self.store.insert(
            REFLECTIONS_TABLE,
            {
                "user_id": user_id,
                "challenge_id": challenge_id,
                "session_id": session_id,
                "reflections": answers,
            },
        )

        session_deactivated = False
        if session_id:
            try:
                updated = self.store.update(
                    SESSIONS_TABLE,
                    [
                        eq("id", session_id),
                        eq("user_id", user_id),
                        eq("is_active", True),
                    ],
                    {
                        "completed_at": self._now(),
                        "is_active": False,
                        "posted_anonymously": posted_anonymously,
                    },
                )
                session_deactivated = bool(updated)
                if not session_deactivated:
                    logger.info(
                        f"Challenge session {session_id} was already deactivated "
                        f"(user {user_id}, challenge {challenge_id})"
                    )
            except Exception as e:
                logger.warning(
                    f"Could not deactivate challenge session {session_id} for user {user_id}, "
                    f"challenge {challenge_id}; reflection saved: {e}"
                )
        else:
            logger.warning(
                f"No active challenge session to complete for user {user_id}, "
                f"challenge {challenge_id}; reflection saved"
            )

        points_awarded = 0
        if challenge and not is_repeat_completion:
            points_awarded = challenge.points

        logger.info(
            f"Completed challenge {challenge_id} for user {user_id}: "
            f"session={session_id} deactivated={session_deactivated} "
            f"repeat={is_repeat_completion} points={points_awarded}"
        )

        self.events.sessions_changed(user_id)
        track_challenge_completed(
            user_id,
            challenge_id,
            {
                "session_id": session_id,
                "points_awarded": points_awarded,
                "points_resolved": points_resolved,
                "is_repeat_completion": is_repeat_completion,
                "posted_anonymously": posted_anonymously,
            },
        )

        return CompletionResult(
            challenge_id=challenge_id,
            reflection_id=reflection_row["id"],
            session_id=session_id,
            session_deactivated=session_deactivated,
            is_repeat_completion=is_repeat_completion,
            points_awarded=points_awarded,
            points_resolved=points_resolved,
        )

    async def cancel_session(self, user_id: Optional[str], challenge_id: str) -> bool:
        """
        Delete the user's active session for a challenge.

        Returns True if a row was removed. Cancelling nothing is not an error,
        and neither is cancelling without a user.
        """
        if not user_id:
            return False

        deleted = self.store.delete(
            SESSIONS_TABLE,
            [
                eq("user_id", user_id),
                eq("challenge_id", challenge_id),
                eq("is_active", True),
            ],
        )

        if deleted:
            logger.info(
                f"Cancelled {deleted} challenge session(s) for user {user_id}, challenge {challenge_id}"
            )
            self.events.sessions_changed(user_id)

        return deleted > 0

    async def get_active_session(
        self, user_id: Optional[str], challenge_id: str
    ) -> Optional[ChallengeSession]:
        if not user_id:
            return None

        row = self._find_active_row(user_id, challenge_id)
        return ChallengeSession(**row) if row else None

    async def list_in_progress(self, user_id: Optional[str]) -> List[InProgressChallenge]:
        """
        List the user's in-progress challenges, newest first.

        Sessions that already have a reflection were completed in substance
        but never deactivated; they are deleted here instead of being shown.
        """
        if not user_id:
            return []

        sessions = self.store.select(
            SESSIONS_TABLE,
            [
                eq("user_id", user_id),
                eq("is_active", True),
                is_null("completed_at"),
            ],
            order="started_at",
            desc=True,
        )
        if not sessions:
            return []

        session_ids = [s["id"] for s in sessions]
        reflections = self.store.select(
            REFLECTIONS_TABLE,
            [eq("user_id", user_id), in_("session_id", session_ids)],
            columns="session_id, created_at",
        )
        completed_ids = {r["session_id"] for r in reflections if r.get("session_id")}

        if completed_ids:
            deleted = self.store.delete(
                SESSIONS_TABLE,
                [eq("user_id", user_id), in_("id", sorted(completed_ids))],
            )
            logger.info(
                f"Reconciled {deleted} completed-but-active challenge sessions for user {user_id}: "
                f"{sorted(completed_ids)}"
            )

        remaining = [s for s in sessions if s["id"] not in completed_ids]
        if not remaining:
            return []

        challenges = self.catalog.get_many(s["challenge_id"] for s in remaining)

        return [
            InProgressChallenge(
                **session,
                challenge=challenges.get(session["challenge_id"])
                or ChallengeSummary.placeholder(session["challenge_id"]),
            )
            for session in remaining
        ]

    async def list_completed(self, user_id: Optional[str]) -> CompletionHistory:
        """
        Completed challenges, grouped per challenge, most recent first.

        Built from reflections: session rows for a pair are recycled by the
        next start or completion, reflections are kept.
        """
        if not user_id:
            return CompletionHistory()

        rows = self.store.select(
            REFLECTIONS_TABLE,
            [eq("user_id", user_id)],
            order="created_at",
            desc=True,
            columns="id, challenge_id, created_at",
        )
        if not rows:
            return CompletionHistory()

        grouped: Dict[str, Dict[str, Any]] = {}
        for row in rows:
            entry = grouped.setdefault(
                row["challenge_id"],
                {"completions": 0, "last_completed_at": row.get("created_at")},
            )
            entry["completions"] += 1

        challenges = self.catalog.get_many(grouped.keys())

        stats = []
        for challenge_id, entry in grouped.items():
            challenge = challenges.get(challenge_id) or ChallengeSummary.placeholder(
                challenge_id
            )
            stats.append(
                CompletedChallengeStats(
                    challenge=challenge,
                    completions=entry["completions"],
                    last_completed_at=entry["last_completed_at"],
                    # Points are awarded on the first completion only
                    points=challenge.points,
                )
            )

        return CompletionHistory(
            challenges=stats,
            total_completions=len(rows),
            total_points=sum(s.points for s in stats),
        )

    async def list_reflections(
        self, user_id: Optional[str], challenge_id: str
    ) -> List[Reflection]:
        if not user_id:
            return []

        rows = self.store.select(
            REFLECTIONS_TABLE,
            [eq("user_id", user_id), eq("challenge_id", challenge_id)],
            order="created_at",
            desc=True,
        )
        return [Reflection(**row) for row in rows]

    def cleanup_orphaned_sessions(self) -> Dict[str, int]:
        """
        System-wide deletion of session rows that no read can ever return,
        for the maintenance task.

        Only rows breaking the session invariants are touched: inactive rows
        without completed_at, and active rows that already carry completed_at.
        Active sessions a reflection points at are repaired per user by
        list_in_progress(), never from here.
        """
        inactive_incomplete = self.store.delete(
            SESSIONS_TABLE, [eq("is_active", False), is_null("completed_at")]
        )
        completed_active = self.store.delete(
            SESSIONS_TABLE, [eq("is_active", True), not_null("completed_at")]
        )

        return {
            "inactive_incomplete_deleted": inactive_incomplete,
            "completed_active_deleted": completed_active,
        }


challenge_session_service = ChallengeSessionService()


def get_challenge_session_service() -> ChallengeSessionService:
    """FastAPI dependency returning the shared service."""
    return challenge_session_service
