"""Owner-scoped document store for visualization documents.

Every read and write is filtered by ``owner_id``; the only unscoped lookup is
``find_by_share_id``, which returns public documents only. Updates are a single
statement (or a single locked dict write), so concurrent writers never interleave
within one update and the last write wins.
"""

import asyncio
import hashlib
import secrets
import uuid
from typing import Any, Dict, List, Optional, Protocol

import psycopg
from psycopg.rows import dict_row
from psycopg.types.json import Jsonb

from api.utils.debug import print__storage_debug
from storage.config import DOCUMENT_STORE, SHARE_ID_LENGTH
from storage.database.connection import get_direct_connection
from viz_agent.utils.document import VisualizationDocument, utc_now
from viz_agent.utils.errors import UpstreamUnavailable

# Columns a caller may change through update()
UPDATABLE_FIELDS = ("title", "kind", "payload", "history", "metadata", "is_public", "share_id")


def generate_share_id() -> str:
    """First 12 hex chars of SHA-256 over a random token."""
    return hashlib.sha256(secrets.token_bytes(32)).hexdigest()[:SHARE_ID_LENGTH]


def new_document_id() -> str:
    return uuid.uuid4().hex


class DocumentStore(Protocol):
    async def find_by_id(self, document_id: str, owner_id: str) -> Optional[VisualizationDocument]: ...

    async def create(self, document: VisualizationDocument) -> VisualizationDocument: ...

    async def update(
        self, document_id: str, owner_id: str, patch: Dict[str, Any]
    ) -> Optional[VisualizationDocument]: ...

    async def delete(self, document_id: str, owner_id: str) -> bool: ...

    async def list_by_owner(self, owner_id: str, limit: int = 20) -> List[VisualizationDocument]: ...

    async def count_by_owner(self, owner_id: str) -> int: ...

    async def find_by_share_id(self, share_id: str) -> Optional[VisualizationDocument]: ...


def _check_patch(patch: Dict[str, Any]) -> None:
    unknown = set(patch) - set(UPDATABLE_FIELDS)
    if unknown:
        raise ValueError(f"cannot update fields: {sorted(unknown)}")


# ==============================================================================
# IN-MEMORY
# ==============================================================================
class InMemoryDocumentStore:
    def __init__(self):
        self._documents: Dict[str, VisualizationDocument] = {}
        self._lock = asyncio.Lock()

    async def find_by_id(self, document_id, owner_id):
        async with self._lock:
            document = self._documents.get(document_id)
            if document is None or document.owner_id != owner_id:
                return None
            return document.model_copy(deep=True)

    async def create(self, document):
        async with self._lock:
            stored = document.model_copy(deep=True)
            if stored.id is None:
                stored.id = new_document_id()
            now = utc_now()
            stored.created_at = now
            stored.updated_at = now
            self._documents[stored.id] = stored
            print__storage_debug(f"💾 MEMORY STORE: created {stored.id} for {stored.owner_id}")
            return stored.model_copy(deep=True)

    async def update(self, document_id, owner_id, patch):
        _check_patch(patch)
        async with self._lock:
            document = self._documents.get(document_id)
            if document is None or document.owner_id != owner_id:
                return None
            data = document.model_dump()
            data.update(patch)
            data["updated_at"] = utc_now()
            updated = VisualizationDocument.model_validate(data)
            self._documents[document_id] = updated
            print__storage_debug(f"📝 MEMORY STORE: updated {document_id} ({', '.join(patch)})")
            return updated.model_copy(deep=True)

    async def delete(self, document_id, owner_id):
        async with self._lock:
            document = self._documents.get(document_id)
            if document is None or document.owner_id != owner_id:
                return False
            del self._documents[document_id]
            return True

    async def list_by_owner(self, owner_id, limit=20):
        async with self._lock:
            owned = [d for d in self._documents.values() if d.owner_id == owner_id]
            owned.sort(key=lambda d: d.updated_at, reverse=True)
            return [d.model_copy(deep=True) for d in owned[:limit]]

    async def count_by_owner(self, owner_id):
        async with self._lock:
            return sum(1 for d in self._documents.values() if d.owner_id == owner_id)

    async def find_by_share_id(self, share_id):
        async with self._lock:
            for document in self._documents.values():
                if document.share_id == share_id and document.is_public:
                    return document.model_copy(deep=True)
            return None


# ==============================================================================
# POSTGRESQL
# ==============================================================================
SELECT_COLUMNS = (
    "id, owner_id, kind, title, payload, history, metadata, "
    "is_public, share_id, created_at, updated_at"
)


def _to_column(field: str, value: Any) -> Any:
    if field in ("payload", "metadata", "history"):
        if hasattr(value, "model_dump"):
            value = value.model_dump(mode="json")
        elif isinstance(value, list):
            value = [v.model_dump(mode="json") if hasattr(v, "model_dump") else v for v in value]
        return Jsonb(value)
    if field == "kind":
        return getattr(value, "value", value)
    return value


def _from_row(row: Dict[str, Any]) -> VisualizationDocument:
    return VisualizationDocument.model_validate(row)


class PostgresDocumentStore:
    """psycopg-backed store; ``psycopg.Error`` surfaces as ``UpstreamUnavailable``."""

    def __init__(self, connection_factory=get_direct_connection):
        self._connect = connection_factory

    async def _fetch(self, query: str, params: tuple, many: bool = False, commit: bool = False):
        try:
            async with self._connect() as conn:
                async with conn.cursor(row_factory=dict_row) as cur:
                    await cur.execute(query, params)
                    if many:
                        result = await cur.fetchall()
                    elif cur.description is not None:
                        result = await cur.fetchone()
                    else:
                        result = cur.rowcount
                if commit:
                    await conn.commit()
                return result
        except psycopg.Error as exc:
            print__storage_debug(f"❌ PG STORE: {type(exc).__name__}: {exc}")
            raise UpstreamUnavailable(f"document store error: {type(exc).__name__}") from exc

    async def find_by_id(self, document_id, owner_id):
        row = await self._fetch(
            f"SELECT {SELECT_COLUMNS} FROM visualizations WHERE id = %s AND owner_id = %s",
            (document_id, owner_id),
        )
        return _from_row(row) if row else None

    async def create(self, document):
        document_id = document.id or new_document_id()
        row = await self._fetch(
            f"""
            INSERT INTO visualizations
                (id, owner_id, kind, title, payload, history, metadata, is_public, share_id)
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
            RETURNING {SELECT_COLUMNS}
            """,
            (
                document_id,
                document.owner_id,
                _to_column("kind", document.kind),
                document.title,
                _to_column("payload", document.payload),
                _to_column("history", document.history),
                _to_column("metadata", document.metadata),
                document.is_public,
                document.share_id,
            ),
            commit=True,
        )
        print__storage_debug(f"💾 PG STORE: created {document_id} for {document.owner_id}")
        return _from_row(row)

    async def update(self, document_id, owner_id, patch):
        _check_patch(patch)
        if not patch:
            return await self.find_by_id(document_id, owner_id)
        assignments = ", ".join(f"{field} = %s" for field in patch)
        params = tuple(_to_column(field, value) for field, value in patch.items())
        row = await self._fetch(
            f"""
            UPDATE visualizations SET {assignments}, updated_at = NOW()
            WHERE id = %s AND owner_id = %s
            RETURNING {SELECT_COLUMNS}
            """,
            params + (document_id, owner_id),
            commit=True,
        )
        return _from_row(row) if row else None

    async def delete(self, document_id, owner_id):
        deleted = await self._fetch(
            "DELETE FROM visualizations WHERE id = %s AND owner_id = %s",
            (document_id, owner_id),
            commit=True,
        )
        return bool(deleted)

    async def list_by_owner(self, owner_id, limit=20):
        rows = await self._fetch(
            f"""
            SELECT {SELECT_COLUMNS} FROM visualizations
            WHERE owner_id = %s ORDER BY updated_at DESC LIMIT %s
            """,
            (owner_id, limit),
            many=True,
        )
        return [_from_row(row) for row in rows]

    async def count_by_owner(self, owner_id):
        row = await self._fetch(
            "SELECT COUNT(*) AS count FROM visualizations WHERE owner_id = %s", (owner_id,)
        )
        return int(row["count"]) if row else 0

    async def find_by_share_id(self, share_id):
        row = await self._fetch(
            f"""
            SELECT {SELECT_COLUMNS} FROM visualizations
            WHERE share_id = %s AND is_public = TRUE
            """,
            (share_id,),
        )
        return _from_row(row) if row else None


def create_document_store() -> DocumentStore:
    if DOCUMENT_STORE == "memory":
        print__storage_debug("🧠 DOCUMENT STORE: using in-memory store")
        return InMemoryDocumentStore()
    print__storage_debug("🐘 DOCUMENT STORE: using PostgreSQL")
    return PostgresDocumentStore()
