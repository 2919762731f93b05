"""Base class for the media index repositories."""
import aiosqlite


class AsyncRepository:
    """Async base repository class over one aiosqlite connection.

    Subclasses keep the SQL for their tables and return plain dicts.

    Example:
        class GrantRepository(AsyncRepository):
            async def grants_for(self, media_id: int) -> list[dict]:
                return await self._fetchall(
                    "SELECT grantee FROM uri_grants WHERE media_id = ?", (media_id,)
                )
    """

    def __init__(self, connection: aiosqlite.Connection):
        self._conn = connection

    async def _execute(self, sql: str, parameters: tuple = ()) -> aiosqlite.Cursor:
        """Execute SQL with bound parameters (never format values into sql)."""
        return await self._conn.execute(sql, parameters)

    async def _execute_many(self, sql: str, parameters_list: list[tuple]) -> aiosqlite.Cursor:
        """Execute sql once per parameter tuple, e.g. one consent row per record."""
        return await self._conn.executemany(sql, parameters_list)

    async def _commit(self) -> None:
        await self._conn.commit()

    def _row_to_dict(self, row: aiosqlite.Row | None) -> dict | None:
        return dict(row) if row else None

    async def _fetchone(self, sql: str, parameters: tuple = ()) -> dict | None:
        """Fetch a single row as a dict, or None when nothing matches."""
        cursor = await self._execute(sql, parameters)
        row = await cursor.fetchone()
        return self._row_to_dict(row)

    async def _fetchall(self, sql: str, parameters: tuple = ()) -> list[dict]:
        cursor = await self._execute(sql, parameters)
        rows = await cursor.fetchall()
        return [dict(row) for row in rows]
