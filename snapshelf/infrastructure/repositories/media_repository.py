"""Media repository - rows of the shared media index.

Handles the 'media', 'uri_grants' and 'consent_requests' tables.
"""
from typing import Optional

from .base import AsyncRepository


class MediaRepository(AsyncRepository):
    """Repository for shared media records and their access grants."""

    async def create(
        self,
        display_name: str,
        mime_type: str,
        owner: str,
        data_path: str,
        width: int = None,
        height: int = None
    ) -> int:
        """Create a pending media record.

        Args:
            display_name: Name shown to users (e.g. 'a1b2.jpg')
            mime_type: MIME type of the media
            owner: Identity of the app that inserted the record
            data_path: Storage-relative data file name
            width: Image width
            height: Image height

        Returns:
            New record id
        """
        cursor = await self._execute(
            """INSERT INTO media (display_name, mime_type, width, height, owner, data_path, is_pending)
               VALUES (?, ?, ?, ?, ?, ?, 1)""",
            (display_name, mime_type, width, height, owner, data_path)
        )
        await self._commit()
        return cursor.lastrowid

    async def get_by_id(self, media_id: int) -> dict | None:
        """Get media record by id (pending records included)."""
        return await self._fetchone("SELECT * FROM media WHERE id = ?", (media_id,))

    async def list_published(self) -> list[dict]:
        """List published records ordered by display name, then id."""
        return await self._fetchall(
            """SELECT id, display_name, width, height FROM media
               WHERE is_pending = 0
               ORDER BY display_name ASC, id ASC"""
        )

    async def publish(self, media_id: int) -> bool:
        """Mark a pending record as published."""
        cursor = await self._execute(
            "UPDATE media SET is_pending = 0 WHERE id = ?", (media_id,)
        )
        await self._commit()
        return cursor.rowcount > 0

    async def delete(self, media_id: int) -> dict | None:
        """Delete media record.

        Returns:
            The deleted record or None if it didn't exist
        """
        record = await self.get_by_id(media_id)
        if not record:
            return None
        await self._execute("DELETE FROM uri_grants WHERE media_id = ?", (media_id,))
        await self._execute("DELETE FROM consent_requests WHERE media_id = ?", (media_id,))
        await self._execute("DELETE FROM media WHERE id = ?", (media_id,))
        await self._commit()
        return record

    async def has_grant(self, media_id: int, grantee: str) -> bool:
        """Check whether grantee holds a URI grant on the record."""
        row = await self._fetchone(
            "SELECT 1 AS granted FROM uri_grants WHERE media_id = ? AND grantee = ?",
            (media_id, grantee)
        )
        return row is not None

    async def add_grant(self, media_id: int, grantee: str) -> None:
        await self._execute(
            "INSERT OR IGNORE INTO uri_grants (media_id, grantee) VALUES (?, ?)",
            (media_id, grantee)
        )
        await self._commit()

    async def create_consent_request(
        self,
        token: str,
        kind: str,
        media_ids: list[int],
        requester: str
    ) -> None:
        """Record a consent request covering one or more records.

        Args:
            token: Consent token handed to the requester
            kind: 'recoverable' (grant access) or 'delete_request' (platform deletes)
            media_ids: Records covered by the request
            requester: Identity of the requesting app
        """
        await self._execute_many(
            """INSERT OR REPLACE INTO consent_requests (token, kind, media_id, requester)
               VALUES (?, ?, ?, ?)""",
            [(token, kind, media_id, requester) for media_id in media_ids]
        )
        await self._commit()

    async def get_consent_request(self, token: str) -> Optional[dict]:
        """Get a consent request by token.

        Returns:
            Dict with kind, requester and media_ids, or None
        """
        rows = await self._fetchall(
            "SELECT kind, media_id, requester FROM consent_requests WHERE token = ?",
            (token,)
        )
        if not rows:
            return None
        return {
            "token": token,
            "kind": rows[0]["kind"],
            "requester": rows[0]["requester"],
            "media_ids": [row["media_id"] for row in rows],
        }

    async def delete_consent_request(self, token: str) -> bool:
        cursor = await self._execute(
            "DELETE FROM consent_requests WHERE token = ?", (token,)
        )
        await self._commit()
        return cursor.rowcount > 0
