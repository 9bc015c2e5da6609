"""
Wallet contribution records stored in Supabase tables
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from supabase import create_async_client

from .logging import get_logger

if TYPE_CHECKING:
    from supabase import AsyncClient

logger = get_logger(__name__)

WALLET_USERS = "wallet_users"
RECORDING_CONTRIBUTIONS = "recording_contributions"
REVIEW_ACTIVITIES = "review_activities"
BATCH_ACTIVITIES = "batch_activities"


class DatabaseException(Exception):
    """Raised when a wallet database operation fails."""

    pass


def _now() -> str:
    return datetime.now(UTC).isoformat()


class WalletDatabase:
    """CRUD access to wallet users, recordings and review activity."""

    def __init__(self, url: str | None, key: str | None):
        if not url or not key:
            raise DatabaseException(
                "Supabase URL and anon key are required for the wallet database"
            )
        self.url = url
        self.key = key
        self._client: AsyncClient | None = None

    async def _get_client(self) -> "AsyncClient":
        if self._client is None:
            self._client = await create_async_client(self.url, self.key)
        return self._client

    async def _execute(self, operation: str, build) -> list[dict[str, Any]]:
        """Run a query built by ``build(client)`` and return its rows."""
        try:
            client = await self._get_client()
            response = await build(client).execute()
        except Exception as e:
            logger.error("Wallet database operation failed", operation=operation, error=str(e))
            raise DatabaseException(f"{operation} failed: {e}") from e
        return list(response.data or [])

    async def upsert_user(
        self, wallet_address: str, user_info: dict[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        row = {
            "wallet_address": wallet_address,
            "user_info": user_info or {},
            "updated_at": _now(),
        }
        return await self._execute(
            "upsert_user",
            lambda c: c.table(WALLET_USERS).upsert(row, on_conflict="wallet_address"),
        )

    async def add_recording_contribution(
        self, contribution: dict[str, Any]
    ) -> list[dict[str, Any]]:
        row = {**contribution, "created_at": _now()}
        return await self._execute(
            "add_recording_contribution",
            lambda c: c.table(RECORDING_CONTRIBUTIONS).insert(row),
        )

    async def add_review_activity(self, activity: dict[str, Any]) -> list[dict[str, Any]]:
        row = {**activity, "created_at": _now()}
        return await self._execute(
            "add_review_activity",
            lambda c: c.table(REVIEW_ACTIVITIES).insert(row),
        )

    async def batch_add_activities(
        self, activities: list[dict[str, Any]]
    ) -> list[dict[str, Any]]:
        created_at = _now()
        rows = [{**activity, "created_at": created_at} for activity in activities]
        return await self._execute(
            "batch_add_activities",
            lambda c: c.table(BATCH_ACTIVITIES).insert(rows),
        )

    async def list_recording_contributions(
        self, wallet_address: str, limit: int = 10, offset: int = 0
    ) -> list[dict[str, Any]]:
        return await self._execute(
            "list_recording_contributions",
            lambda c: c.table(RECORDING_CONTRIBUTIONS)
            .select("*")
            .eq("wallet_address", wallet_address)
            .order("created_at", desc=True)
            .range(offset, offset + limit - 1),
        )

    async def list_batch_activities(
        self, wallet_address: str, limit: int = 10, offset: int = 0
    ) -> list[dict[str, Any]]:
        return await self._execute(
            "list_batch_activities",
            lambda c: c.table(BATCH_ACTIVITIES)
            .select("*")
            .eq("wallet_address", wallet_address)
            .order("created_at", desc=True)
            .range(offset, offset + limit - 1),
        )

    async def get_user_stats(self, wallet_address: str) -> dict[str, Any]:
        """Aggregate recording and review totals for one wallet."""
        recordings = await self._execute(
            "get_user_stats.recordings",
            lambda c: c.table(RECORDING_CONTRIBUTIONS)
            .select("duration, created_at")
            .eq("wallet_address", wallet_address),
        )
        reviews = await self._execute(
            "get_user_stats.reviews",
            lambda c: c.table(REVIEW_ACTIVITIES)
            .select("items_reviewed, accuracy")
            .eq("wallet_address", wallet_address),
        )

        total_time = sum(r.get("duration") or 0 for r in recordings)
        accuracy = (
            sum(r.get("accuracy") or 0 for r in reviews) / len(reviews) if reviews else 0
        )
        timestamps = [r["created_at"] for r in recordings if r.get("created_at")]

        return {
            "wallet_address": wallet_address,
            "total_recordings": len(recordings),
            "total_reviews": len(reviews),
            "total_contribution_time": total_time,
            "accuracy_score": accuracy,
            "last_activity": max(timestamps) if timestamps else None,
            "contribution_score": len(recordings) * 10 + len(reviews) * 5,
        }
