# src/storage/sqlite_repository.py - v1
"""SQLite product repository.

Uses stdlib sqlite3. Barcodes are unique; ids are uuid4 strings assigned
on first save. Text search scans candidate rows and ranks them with the
similarity helpers in core.similarity.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import uuid
from pathlib import Path
from typing import Any

from shelfscan.core.errors import ConflictError, TransientError
from shelfscan.core.models import ProductIdentity
from shelfscan.core.similarity import jaccard_similarity, name_similarity, tokenize
from shelfscan.storage.base_repository import BaseProductRepository
from shelfscan.storage.models import ProductMatch, TextQuery

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS products (
    id TEXT PRIMARY KEY,
    barcode TEXT UNIQUE,
    name TEXT NOT NULL,
    brand TEXT NOT NULL DEFAULT '',
    category TEXT NOT NULL DEFAULT 'Unknown',
    size TEXT,
    image_url TEXT,
    metadata TEXT NOT NULL DEFAULT '{}',
    flagged_for_review INTEGER NOT NULL DEFAULT 0,
    review_reason TEXT,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
    updated_at TEXT DEFAULT CURRENT_TIMESTAMP
);
CREATE INDEX IF NOT EXISTS idx_products_brand ON products(brand);
"""

_COLUMNS = "id, barcode, name, brand, category, size, image_url, metadata"

DEFAULT_MIN_MATCH_SCORE = 0.3


class SqliteProductRepository(BaseProductRepository):
    """SQLite-backed system of record for product identities."""

    def __init__(
        self,
        db_path: Path | str,
        min_match_score: float = DEFAULT_MIN_MATCH_SCORE,
    ) -> None:
        if str(db_path) == ":memory:":
            self._conn = sqlite3.connect(":memory:")
        else:
            path = Path(db_path).expanduser()
            path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(str(path))
            self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.executescript(_SCHEMA)
        self._min_match_score = min_match_score

    async def find_by_barcode(self, barcode: str) -> ProductIdentity | None:
        row = self._query_one(f"SELECT {_COLUMNS} FROM products WHERE barcode = ?", (barcode,))
        return _row_to_identity(row) if row else None

    async def find_by_id(self, product_id: str) -> ProductIdentity | None:
        row = self._query_one(f"SELECT {_COLUMNS} FROM products WHERE id = ?", (product_id,))
        return _row_to_identity(row) if row else None

    async def find_by_text(self, query: TextQuery) -> ProductMatch | None:
        if query.is_empty:
            return None

        tokens = tokenize(query.as_text())
        if not tokens:
            return None
        # Narrow the scan to rows sharing at least one token
        clauses = " OR ".join("LOWER(name || ' ' || brand) LIKE ?" for _ in tokens)
        params = tuple(f"%{t}%" for t in tokens)
        rows = self._query_all(f"SELECT {_COLUMNS} FROM products WHERE {clauses}", params)

        best: ProductMatch | None = None
        for row in rows:
            identity = _row_to_identity(row)
            score = _match_score(query, identity)
            if best is None or score > best.score:
                best = ProductMatch(identity=identity, score=score)

        if best is None or best.score < self._min_match_score:
            return None
        logger.debug("Text match %r -> %s (%.2f)", query.as_text(), best.identity.id, best.score)
        return best

    async def save(self, identity: ProductIdentity) -> ProductIdentity:
        """Insert or update.

        Without an id, a row with the same barcode is updated in place and
        keeps its id; otherwise a new id is minted.

        Raises:
            ConflictError: The barcode already belongs to another product.
            TransientError: The database is locked or busy.
        """
        product_id = identity.id
        if not product_id and identity.barcode:
            existing = await self.find_by_barcode(identity.barcode)
            if existing is not None:
                product_id = existing.id
        product_id = product_id or str(uuid.uuid4())
        stored = identity.model_copy(update={"id": product_id})

        try:
            self._conn.execute(
                """INSERT INTO products
                       (id, barcode, name, brand, category, size, image_url, metadata)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                   ON CONFLICT(id) DO UPDATE SET
                       barcode = excluded.barcode,
                       name = excluded.name,
                       brand = excluded.brand,
                       category = excluded.category,
                       size = excluded.size,
                       image_url = excluded.image_url,
                       metadata = excluded.metadata,
                       updated_at = CURRENT_TIMESTAMP""",
                (
                    stored.id,
                    stored.barcode,
                    stored.name,
                    stored.brand,
                    stored.category,
                    stored.size,
                    stored.image_url,
                    json.dumps(stored.metadata, default=str),
                ),
            )
            self._conn.commit()
        except sqlite3.IntegrityError as e:
            self._conn.rollback()
            raise ConflictError(
                f"Barcode {stored.barcode} already belongs to another product",
                details={"product_id": stored.id},
            ) from e
        except sqlite3.OperationalError as e:
            self._conn.rollback()
            raise _translate_operational(e) from e

        logger.info("Saved product %s (barcode=%s)", stored.id, stored.barcode)
        return stored

    async def flag_for_review(self, product_id: str, reason: str = "") -> None:
        try:
            self._conn.execute(
                """UPDATE products SET flagged_for_review = 1, review_reason = ?,
                       updated_at = CURRENT_TIMESTAMP WHERE id = ?""",
                (reason, product_id),
            )
            self._conn.commit()
        except sqlite3.OperationalError as e:
            self._conn.rollback()
            raise _translate_operational(e) from e

    async def is_flagged(self, product_id: str) -> bool:
        row = self._query_one(
            "SELECT flagged_for_review FROM products WHERE id = ?", (product_id,)
        )
        return bool(row and row[0])

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    # --- Internals ---

    def _query_one(self, sql: str, params: tuple[Any, ...]) -> tuple[Any, ...] | None:
        try:
            return self._conn.execute(sql, params).fetchone()
        except sqlite3.OperationalError as e:
            raise _translate_operational(e) from e

    def _query_all(self, sql: str, params: tuple[Any, ...]) -> list[tuple[Any, ...]]:
        try:
            return self._conn.execute(sql, params).fetchall()
        except sqlite3.OperationalError as e:
            raise _translate_operational(e) from e


def _translate_operational(error: sqlite3.OperationalError) -> Exception:
    msg = str(error).lower()
    if "locked" in msg or "busy" in msg:
        return TransientError(f"Product database unavailable: {error}")
    return error


def _row_to_identity(row: tuple[Any, ...]) -> ProductIdentity:
    return ProductIdentity(
        id=row[0],
        barcode=row[1],
        name=row[2],
        brand=row[3],
        category=row[4],
        size=row[5],
        image_url=row[6],
        metadata=json.loads(row[7] or "{}"),
    )


def _match_score(query: TextQuery, identity: ProductIdentity) -> float:
    """Weighted name/brand similarity in [0, 1]."""
    total = 0.0
    weight = 0.0
    if query.product_name:
        total += 0.7 * name_similarity(query.product_name, identity.name)
        weight += 0.7
    if query.brand:
        if identity.brand:
            total += 0.3 * name_similarity(query.brand, identity.brand)
        weight += 0.3
    if weight == 0.0:
        return jaccard_similarity(" ".join(query.keywords), f"{identity.brand} {identity.name}")
    return min(1.0, total / weight)
