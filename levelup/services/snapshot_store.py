"""
Snapshot Store - MongoDB CRUD for GitHub snapshot documents.

A snapshot is the captured state of a user's GitHub profile at one point
in time. Verification only ever reads the latest few, newest first.
"""

from datetime import datetime, timezone
from typing import List, Optional

from pymongo import DESCENDING
from pymongo.collection import Collection

from levelup.db.mongodb import GITHUB_SNAPSHOTS, get_collection


# ============================================================
# HELPER: Convert ObjectId to string for JSON serialization
# ============================================================

def serialize_doc(doc: dict) -> Optional[dict]:
    """Convert MongoDB document to JSON-serializable dict."""
    if doc is None:
        return None
    if "_id" in doc:
        doc["_id"] = str(doc["_id"])
    return doc


class GitHubSnapshotStore:
    """Handles GitHub snapshot storage."""

    def __init__(self):
        self.collection: Collection = get_collection(GITHUB_SNAPSHOTS)

    def insert(self, user_id: str, snapshot: dict, captured_at: Optional[datetime] = None) -> str:
        """
        Insert a snapshot document.

        Args:
            user_id: Platform user ID
            snapshot: Profile summary (must include "topics")
            captured_at: Capture time, defaults to now (UTC)

        Returns:
            MongoDB ObjectId as string
        """
        doc = {
            "user_id": user_id,
            **snapshot,
            "captured_at": captured_at or datetime.now(timezone.utc)
        }
        result = self.collection.insert_one(doc)
        return str(result.inserted_id)

    def latest(self, user_id: str, limit: int = 10) -> List[dict]:
        """Most recent snapshots for a user, newest first."""
        cursor = self.collection.find(
            {"user_id": user_id},
            sort=[("captured_at", DESCENDING)],
            limit=limit
        )
        return [serialize_doc(doc) for doc in cursor]


def get_snapshot_store() -> GitHubSnapshotStore:
    """Get snapshot store instance."""
    return GitHubSnapshotStore()
