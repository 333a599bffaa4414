"""
Screenshot metadata store using SQLite.

The metadata store is the source of truth for:
- Screenshot identity, path, fingerprint and favourite flag
- Analysis output (OCR text, titles, descriptions, keywords)
- The lexical search index
- Tags and folder definitions (smart folder rules as JSON)

Embeddings live in the separate JSON index owned by EmbeddingStore.
"""

import json
import logging
import sqlite3
import threading
from pathlib import Path
from typing import Any, Optional

from .models import Screenshot, ScreenshotMetadata, now_ms

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS screenshots (
    id TEXT PRIMARY KEY,
    filepath TEXT NOT NULL UNIQUE,
    filename TEXT NOT NULL,
    created_at INTEGER NOT NULL,
    updated_at INTEGER NOT NULL,
    file_size INTEGER NOT NULL DEFAULT 0,
    format TEXT NOT NULL DEFAULT 'png',
    content_hash TEXT,
    is_favorite INTEGER DEFAULT 0
);

CREATE TABLE IF NOT EXISTS screenshot_metadata (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    screenshot_id TEXT NOT NULL,
    ocr_text TEXT,
    ai_title TEXT,
    ai_description TEXT,
    ai_keywords TEXT,
    comprehensive_description TEXT,
    confidence_score REAL,
    processed_at INTEGER,
    FOREIGN KEY(screenshot_id) REFERENCES screenshots(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS tags (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL UNIQUE,
    color TEXT NOT NULL DEFAULT '#3B82F6',
    created_at INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS screenshot_tags (
    screenshot_id TEXT NOT NULL,
    tag_id INTEGER NOT NULL,
    created_at INTEGER NOT NULL,
    PRIMARY KEY(screenshot_id, tag_id),
    FOREIGN KEY(screenshot_id) REFERENCES screenshots(id) ON DELETE CASCADE,
    FOREIGN KEY(tag_id) REFERENCES tags(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS folders (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    is_smart INTEGER DEFAULT 0,
    filter_rules TEXT,
    created_at INTEGER NOT NULL,
    updated_at INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS search_index (
    screenshot_id TEXT PRIMARY KEY,
    content TEXT NOT NULL,
    keywords TEXT,
    indexed_at INTEGER NOT NULL,
    FOREIGN KEY(screenshot_id) REFERENCES screenshots(id) ON DELETE CASCADE
);

CREATE INDEX IF NOT EXISTS idx_screenshots_created_at ON screenshots(created_at DESC);
CREATE INDEX IF NOT EXISTS idx_screenshots_content_hash ON screenshots(content_hash);
CREATE INDEX IF NOT EXISTS idx_metadata_screenshot_id ON screenshot_metadata(screenshot_id);
CREATE INDEX IF NOT EXISTS idx_screenshot_tags_tag_id ON screenshot_tags(tag_id);
"""

DEFAULT_SMART_FOLDERS = (
    (1, "All Screenshots", {"type": "all"}),
    (2, "Recent", {"type": "recent", "days": 7}),
    (3, "Favorites", {"type": "favorites"}),
)


class MetadataStore:
    """
    SQLite-backed store for screenshots and their analysis output.

    Timestamps are epoch milliseconds. Only the newest metadata row per
    screenshot (by processed_at) is considered current.

    The connection is shared with worker threads (lexical search runs off
    the event loop), so every statement runs under ``_lock``.
    """

    def __init__(self, db_path: Path):
        """
        Args:
            db_path: Path to SQLite database file
        """
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()
        self._conn = sqlite3.connect(str(self._db_path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        with self._lock:
            self._conn.execute("PRAGMA foreign_keys = ON")
            self._conn.executescript(SCHEMA)
            self._seed_folders()
            self._conn.commit()
        logger.info("Metadata store opened at %s", self._db_path)

    def _seed_folders(self) -> None:
        now = now_ms()
        for folder_id, name, rule in DEFAULT_SMART_FOLDERS:
            self._conn.execute(
                """
                INSERT OR IGNORE INTO folders
                    (id, name, is_smart, filter_rules, created_at, updated_at)
                VALUES (?, ?, 1, ?, ?, ?)
                """,
                (folder_id, name, json.dumps(rule), now, now),
            )

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    def _write(self, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        with self._lock:
            cursor = self._conn.execute(sql, params)
            self._conn.commit()
            return cursor

    def _fetchone(self, sql: str, params: tuple = ()) -> Optional[sqlite3.Row]:
        with self._lock:
            return self._conn.execute(sql, params).fetchone()

    def _fetchall(self, sql: str, params: tuple = ()) -> list[sqlite3.Row]:
        with self._lock:
            return self._conn.execute(sql, params).fetchall()

    @staticmethod
    def _screenshot(row: sqlite3.Row) -> Screenshot:
        return Screenshot(
            id=row["id"],
            filepath=row["filepath"],
            filename=row["filename"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            file_size=row["file_size"],
            format=row["format"],
            content_hash=row["content_hash"],
            is_favorite=bool(row["is_favorite"]),
        )

    def _screenshots(self, sql: str, params: tuple = ()) -> list[Screenshot]:
        return [self._screenshot(row) for row in self._fetchall(sql, params)]

    # -------------------------------------------------------------------------
    # Screenshots
    # -------------------------------------------------------------------------

    def add_screenshot(self, screenshot: Screenshot) -> Screenshot:
        self._write(
            """
            INSERT INTO screenshots (
                id, filepath, filename, created_at, updated_at,
                file_size, format, content_hash, is_favorite
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                screenshot.id,
                screenshot.filepath,
                screenshot.filename,
                screenshot.created_at,
                screenshot.updated_at,
                screenshot.file_size,
                screenshot.format,
                screenshot.content_hash,
                int(screenshot.is_favorite),
            ),
        )
        logger.info("Screenshot added with id %s", screenshot.id)
        return screenshot

    def get_screenshot(self, screenshot_id: str) -> Optional[Screenshot]:
        row = self._fetchone(
            "SELECT * FROM screenshots WHERE id = ?", (screenshot_id,)
        )
        return self._screenshot(row) if row else None

    def find_by_content_hash(self, content_hash: str) -> Optional[Screenshot]:
        row = self._fetchone(
            "SELECT * FROM screenshots WHERE content_hash = ? ORDER BY created_at LIMIT 1",
            (content_hash,),
        )
        return self._screenshot(row) if row else None

    def all_screenshots(self) -> list[Screenshot]:
        return self._screenshots("SELECT * FROM screenshots ORDER BY created_at DESC")

    def update_screenshot_path(self, screenshot_id: str, filepath: str) -> bool:
        cursor = self._write(
            "UPDATE screenshots SET filepath = ?, filename = ?, updated_at = ? WHERE id = ?",
            (filepath, Path(filepath).name, now_ms(), screenshot_id),
        )
        return cursor.rowcount > 0

    def set_favorite(self, screenshot_id: str, favorite: bool = True) -> bool:
        cursor = self._write(
            "UPDATE screenshots SET is_favorite = ?, updated_at = ? WHERE id = ?",
            (int(favorite), now_ms(), screenshot_id),
        )
        return cursor.rowcount > 0

    def delete_screenshot(self, screenshot_id: str) -> bool:
        cursor = self._write("DELETE FROM screenshots WHERE id = ?", (screenshot_id,))
        return cursor.rowcount > 0

    # -------------------------------------------------------------------------
    # Analysis metadata and lexical search
    # -------------------------------------------------------------------------

    def add_metadata(self, metadata: ScreenshotMetadata) -> int:
        cursor = self._write(
            """
            INSERT INTO screenshot_metadata (
                screenshot_id, ocr_text, ai_title, ai_description, ai_keywords,
                comprehensive_description, confidence_score, processed_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                metadata.screenshot_id,
                metadata.ocr_text,
                metadata.ai_title,
                metadata.ai_description,
                json.dumps(metadata.ai_keywords),
                metadata.comprehensive_description,
                metadata.confidence_score,
                metadata.processed_at,
            ),
        )
        return cursor.lastrowid

    def get_metadata(self, screenshot_id: str) -> Optional[ScreenshotMetadata]:
        row = self._fetchone(
            """
            SELECT * FROM screenshot_metadata WHERE screenshot_id = ?
            ORDER BY processed_at DESC, id DESC LIMIT 1
            """,
            (screenshot_id,),
        )
        if row is None:
            return None
        return ScreenshotMetadata(
            screenshot_id=row["screenshot_id"],
            ocr_text=row["ocr_text"],
            ai_title=row["ai_title"],
            ai_description=row["ai_description"],
            ai_keywords=json.loads(row["ai_keywords"] or "[]"),
            comprehensive_description=row["comprehensive_description"],
            confidence_score=row["confidence_score"],
            processed_at=row["processed_at"] or 0,
        )

    def update_search_index(
        self, screenshot_id: str, content: str, keywords: list[str]
    ) -> None:
        self._write(
            """
            INSERT OR REPLACE INTO search_index (screenshot_id, content, keywords, indexed_at)
            VALUES (?, ?, ?, ?)
            """,
            (screenshot_id, content, " ".join(keywords), now_ms()),
        )

    def search_screenshots(self, query: str, limit: int = 50) -> list[Screenshot]:
        """Substring match over filename, analysis text and the search index.

        Newest first. SQLite LIKE folds ASCII case.
        """
        pattern = f"%{query}%"
        return self._screenshots(
            """
            SELECT DISTINCT s.* FROM screenshots s
            LEFT JOIN screenshot_metadata m ON m.screenshot_id = s.id
            LEFT JOIN search_index si ON si.screenshot_id = s.id
            WHERE s.filename LIKE ?
               OR m.ocr_text LIKE ?
               OR m.ai_title LIKE ?
               OR m.ai_description LIKE ?
               OR m.comprehensive_description LIKE ?
               OR si.content LIKE ?
            ORDER BY s.created_at DESC
            LIMIT ?
            """,
            (pattern,) * 6 + (limit,),
        )

    # -------------------------------------------------------------------------
    # Smart folder rule queries
    # -------------------------------------------------------------------------

    def screenshots_created_between(
        self, start_ms: int, end_ms: Optional[int] = None
    ) -> list[Screenshot]:
        """Inclusive on both ends; an open end means no upper bound."""
        if end_ms is None:
            return self._screenshots(
                "SELECT * FROM screenshots WHERE created_at >= ? ORDER BY created_at DESC",
                (start_ms,),
            )
        return self._screenshots(
            """
            SELECT * FROM screenshots WHERE created_at BETWEEN ? AND ?
            ORDER BY created_at DESC
            """,
            (start_ms, end_ms),
        )

    def favorite_screenshots(self) -> list[Screenshot]:
        return self._screenshots(
            "SELECT * FROM screenshots WHERE is_favorite = 1 ORDER BY created_at DESC"
        )

    def screenshots_with_tag(self, tag_id: int) -> list[Screenshot]:
        return self._screenshots(
            """
            SELECT s.* FROM screenshots s
            JOIN screenshot_tags st ON st.screenshot_id = s.id
            WHERE st.tag_id = ?
            ORDER BY s.created_at DESC
            """,
            (tag_id,),
        )

    def screenshots_with_keyword_blob(self, substring: str) -> list[Screenshot]:
        """Case-sensitive substring match on the serialized keyword list."""
        return self._screenshots(
            """
            SELECT DISTINCT s.* FROM screenshots s
            JOIN screenshot_metadata m ON m.screenshot_id = s.id
            WHERE instr(m.ai_keywords, ?) > 0
            ORDER BY s.created_at DESC
            """,
            (substring,),
        )

    # -------------------------------------------------------------------------
    # Tags and folders
    # -------------------------------------------------------------------------

    def add_tag(self, name: str, color: str = "#3B82F6") -> int:
        cursor = self._write(
            "INSERT INTO tags (name, color, created_at) VALUES (?, ?, ?)",
            (name, color, now_ms()),
        )
        return cursor.lastrowid

    def tag_screenshot(self, screenshot_id: str, tag_id: int) -> bool:
        cursor = self._write(
            """
            INSERT OR IGNORE INTO screenshot_tags (screenshot_id, tag_id, created_at)
            VALUES (?, ?, ?)
            """,
            (screenshot_id, tag_id, now_ms()),
        )
        return cursor.rowcount > 0

    def add_folder(self, name: str, filter_rules: Optional[dict] = None) -> int:
        """Create a folder; passing ``filter_rules`` makes it a smart folder."""
        now = now_ms()
        cursor = self._write(
            """
            INSERT INTO folders (name, is_smart, filter_rules, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (name, int(filter_rules is not None), json.dumps(filter_rules or {}), now, now),
        )
        return cursor.lastrowid

    def _folder(self, row: sqlite3.Row) -> dict[str, Any]:
        # filter_rules stays serialized; decoding belongs to smart_folders.
        return {
            "id": row["id"],
            "name": row["name"],
            "is_smart": bool(row["is_smart"]),
            "filter_rules": row["filter_rules"] or "{}",
        }

    def get_folder(self, folder_id: int) -> Optional[dict[str, Any]]:
        row = self._fetchone(
            "SELECT * FROM folders WHERE id = ?", (folder_id,)
        )
        return self._folder(row) if row else None

    def all_folders(self) -> list[dict[str, Any]]:
        rows = self._fetchall("SELECT * FROM folders ORDER BY id")
        return [self._folder(row) for row in rows]
