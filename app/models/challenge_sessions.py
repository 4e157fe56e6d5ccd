from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field


ChallengeDifficulty = Literal["easy", "medium", "hard"]

UNKNOWN_CHALLENGE_TITLE = "Unknown Challenge"


class ChallengeSession(BaseModel):
    """One user's attempt at one challenge (user_challenge_sessions row)."""

    id: str
    user_id: str
    challenge_id: str
    started_at: datetime
    completed_at: Optional[datetime] = None
    is_active: bool = True
    posted_anonymously: Optional[bool] = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ChallengeSummary(BaseModel):
    """Display metadata for a challenge, as shown next to a session."""

    id: str
    title: str
    description: str = ""
    difficulty: ChallengeDifficulty = "easy"
    category: str = "unknown"
    duration_minutes: int = 0
    points: int = 0
    image_url: Optional[str] = None
    reflection_questions: List[str] = Field(default_factory=list)

    @classmethod
    def placeholder(cls, challenge_id: str) -> "ChallengeSummary":
        """Stand-in for a challenge that no longer exists."""
        return cls(id=challenge_id, title=UNKNOWN_CHALLENGE_TITLE)


class InProgressChallenge(ChallengeSession):
    challenge: ChallengeSummary


class Reflection(BaseModel):
    id: str
    user_id: str
    challenge_id: str
    session_id: Optional[str] = None
    reflections: Dict[str, str] = Field(default_factory=dict)
    created_at: Optional[datetime] = None


class CompletionResult(BaseModel):
    """Outcome of a completion, reporting which writes went through."""

    challenge_id: str
    reflection_id: str
    session_id: Optional[str] = Field(
        None, description="Session the reflection was linked to, if one was active"
    )
    session_deactivated: bool = Field(
        False,
        description="False when no active session was found or the deactivation write failed",
    )
    is_repeat_completion: bool = False
    points_awarded: int = 0
    points_resolved: bool = Field(
        True,
        description="False when challenge metadata could not be read; points_awarded is then 0",
    )


class CompletedChallengeStats(BaseModel):
    challenge: ChallengeSummary
    completions: int
    last_completed_at: Optional[datetime] = None
    points: int = 0


class CompletionHistory(BaseModel):
    challenges: List[CompletedChallengeStats] = Field(default_factory=list)
    total_completions: int = 0
    total_points: int = 0


class CompleteSessionRequest(BaseModel):
    """Request body for completing a challenge session."""

    posted_anonymously: bool = False
    reflections: Dict[str, str] = Field(
        default_factory=dict,
        description="Reflection question text mapped to the user's answer",
    )


class ActiveSessionResponse(BaseModel):
    session: Optional[ChallengeSession] = None
