"""SQLite-backed agent memory.

Three kinds of memory share one database:

- working memory: a free-text scratchpad per (agent, session), injected into
  the agent's prompt on every call and rewritten by the agent itself
- facts: small JSON values per (scope, key), e.g. the current Jira project
- documents: texts with embeddings per namespace, queried by cosine similarity

All access goes through one lock, so read-modify-write updates from
concurrently running steps never lose writes.
"""

from __future__ import annotations

import json
import logging
import math
import sqlite3
import threading
import uuid
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

EmbedFn = Callable[[list[str]], list[list[float]]]

_SCHEMA = """
CREATE TABLE IF NOT EXISTS working_memory (
    agent_id TEXT NOT NULL,
    session_id TEXT NOT NULL,
    content TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    PRIMARY KEY (agent_id, session_id)
);
CREATE TABLE IF NOT EXISTS facts (
    scope TEXT NOT NULL,
    key TEXT NOT NULL,
    value TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    PRIMARY KEY (scope, key)
);
CREATE TABLE IF NOT EXISTS documents (
    id TEXT PRIMARY KEY,
    namespace TEXT NOT NULL,
    text TEXT NOT NULL,
    metadata TEXT NOT NULL,
    embedding TEXT NOT NULL,
    created_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_documents_namespace ON documents(namespace);
"""


@dataclass(frozen=True, slots=True)
class DocumentMatch:
    id: str
    text: str
    score: float
    metadata: dict[str, Any] = field(default_factory=dict)


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    if len(a) != len(b):
        raise ValueError(f"Embedding dimensions differ: {len(a)} != {len(b)}")
    dot = sum(x * y for x, y in zip(a, b))
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    return dot / norm if norm else 0.0


def _now() -> str:
    return datetime.now(tz=UTC).isoformat()


class MemoryStore:
    """Working memory, facts and vector documents in one SQLite database.

    Args:
        db_path: Database file, or ``":memory:"``.
        embed: Function turning texts into embeddings; required for documents.
    """

    def __init__(self, db_path: Path | str = ":memory:", *, embed: EmbedFn | None = None) -> None:
        if str(db_path) != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._db_path = str(db_path)
        self._embed = embed
        self._lock = threading.RLock()
        self._conn = sqlite3.connect(self._db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        with self._lock:
            self._conn.executescript(_SCHEMA)
            self._conn.commit()

    # Working memory

    def get_working_memory(self, agent_id: str, session_id: str) -> str | None:
        with self._lock:
            row = self._conn.execute(
                "SELECT content FROM working_memory WHERE agent_id = ? AND session_id = ?",
                (agent_id, session_id),
            ).fetchone()
        return row["content"] if row else None

    def set_working_memory(self, agent_id: str, session_id: str, content: str) -> None:
        with self._lock:
            self._conn.execute(
                """
                INSERT INTO working_memory (agent_id, session_id, content, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(agent_id, session_id)
                DO UPDATE SET content = excluded.content, updated_at = excluded.updated_at
                """,
                (agent_id, session_id, content, _now()),
            )
            self._conn.commit()
        logger.debug(
            "Working memory updated", extra={"agent_id": agent_id, "session_id": session_id}
        )

    def update_working_memory(
        self, agent_id: str, session_id: str, fn: Callable[[str | None], str]
    ) -> str:
        """Atomically replace working memory with ``fn(current)``."""

        with self._lock:
            updated = fn(self.get_working_memory(agent_id, session_id))
            self.set_working_memory(agent_id, session_id, updated)
        return updated

    # Facts

    def get_value(self, scope: str, key: str, default: Any = None) -> Any:
        with self._lock:
            row = self._conn.execute(
                "SELECT value FROM facts WHERE scope = ? AND key = ?", (scope, key)
            ).fetchone()
        return json.loads(row["value"]) if row else default

    def set_value(self, scope: str, key: str, value: Any) -> None:
        with self._lock:
            self._conn.execute(
                """
                INSERT INTO facts (scope, key, value, updated_at) VALUES (?, ?, ?, ?)
                ON CONFLICT(scope, key)
                DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
                """,
                (scope, key, json.dumps(value), _now()),
            )
            self._conn.commit()

    # Documents

    def _require_embed(self) -> EmbedFn:
        if self._embed is None:
            raise RuntimeError("MemoryStore was created without an embedding function")
        return self._embed

    def add_document(
        self, namespace: str, text: str, metadata: dict[str, Any] | None = None
    ) -> str:
        (embedding,) = self._require_embed()([text])
        doc_id = uuid.uuid4().hex
        with self._lock:
            self._conn.execute(
                "INSERT INTO documents (id, namespace, text, metadata, embedding, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (doc_id, namespace, text, json.dumps(metadata or {}), json.dumps(embedding), _now()),
            )
            self._conn.commit()
        return doc_id

    def query(self, namespace: str, text: str, *, limit: int = 5) -> list[DocumentMatch]:
        """Documents in ``namespace`` most similar to ``text``, best first."""

        (needle,) = self._require_embed()([text])
        with self._lock:
            rows = self._conn.execute(
                "SELECT id, text, metadata, embedding FROM documents WHERE namespace = ?",
                (namespace,),
            ).fetchall()
        matches = [
            DocumentMatch(
                id=row["id"],
                text=row["text"],
                score=cosine_similarity(needle, json.loads(row["embedding"])),
                metadata=json.loads(row["metadata"]),
            )
            for row in rows
        ]
        matches.sort(key=lambda m: m.score, reverse=True)
        return matches[:limit]

    def close(self) -> None:
        with self._lock:
            self._conn.close()
