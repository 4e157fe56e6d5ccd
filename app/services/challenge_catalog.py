"""
Challenge Catalog

Read-only access to challenge display metadata. Used to decorate session
listings and to look up the points a completion is worth; never consulted
when deciding lifecycle transitions.
"""

from typing import Dict, Iterable, Optional

from app.core.store import SupabaseTableStore, eq, in_
from app.models.challenge_sessions import ChallengeSummary

CHALLENGES_TABLE = "challenges"
CHALLENGE_COLUMNS = (
    "id, title, description, difficulty, category, duration_minutes, "
    "points, image_url, reflection_questions"
)


def _to_summary(row: dict) -> ChallengeSummary:
    # Columns are nullable in the challenges table
    return ChallengeSummary(
        id=row["id"],
        title=row.get("title") or "",
        description=row.get("description") or "",
        difficulty=row.get("difficulty") or "easy",
        category=row.get("category") or "unknown",
        duration_minutes=row.get("duration_minutes") or 0,
        points=row.get("points") or 0,
        image_url=row.get("image_url"),
        reflection_questions=row.get("reflection_questions") or [],
    )


class ChallengeCatalog:
    def __init__(self, store: Optional[SupabaseTableStore] = None):
        self.store = store or SupabaseTableStore()

    def get_by_id(self, challenge_id: str) -> Optional[ChallengeSummary]:
        rows = self.store.select(
            CHALLENGES_TABLE,
            [eq("id", challenge_id)],
            limit=1,
            columns=CHALLENGE_COLUMNS,
        )
        return _to_summary(rows[0]) if rows else None

    def get_many(self, challenge_ids: Iterable[str]) -> Dict[str, ChallengeSummary]:
        """Fetch challenges by id. Missing ids are simply absent from the result."""
        ids = list(dict.fromkeys(challenge_ids))
        if not ids:
            return {}

        rows = self.store.select(
            CHALLENGES_TABLE, [in_("id", ids)], columns=CHALLENGE_COLUMNS
        )
        return {row["id"]: _to_summary(row) for row in rows}
