from __future__ import annotations

import argparse
import json
from datetime import date, datetime
from pathlib import Path

from sqlalchemy import create_engine, text

DEFAULT_SQLITE_URL = "sqlite:///./data/moodpeek.db"
EXPORT_TABLES = ("mood_entries", "weekly_summaries", "settings")
JSON_COLUMNS = {"tags", "positive_tags", "negative_tags"}


def _sync_url(url: str) -> str:
    return url.replace("sqlite+aiosqlite://", "sqlite://", 1)


def _serialize_row(row: dict[str, object]) -> dict[str, object]:
    serialized: dict[str, object] = {}
    for key, value in row.items():
        if isinstance(value, (datetime, date)):
            serialized[key] = value.isoformat()
        elif key in JSON_COLUMNS and isinstance(value, str):
            try:
                serialized[key] = json.loads(value)
            except ValueError:
                serialized[key] = value
        else:
            serialized[key] = value
    return serialized


def export_sqlite(sqlite_url: str, output_path: Path) -> dict[str, int]:
    engine = create_engine(_sync_url(sqlite_url))
    payload: dict[str, list[dict[str, object]]] = {table: [] for table in EXPORT_TABLES}

    try:
        with engine.begin() as connection:
            for table in EXPORT_TABLES:
                result = connection.execute(text(f"SELECT * FROM {table} ORDER BY id"))
                payload[table] = [_serialize_row(dict(row)) for row in result.mappings()]
    finally:
        engine.dispose()

    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
    return {table: len(rows) for table, rows in payload.items()}


def main() -> None:
    parser = argparse.ArgumentParser(description="Export MoodPeek data from SQLite to JSON")
    parser.add_argument("--sqlite-url", default=DEFAULT_SQLITE_URL, help="SQLite DATABASE_URL")
    parser.add_argument(
        "--output",
        default="data/moodpeek_export.json",
        type=Path,
        help="Path to export JSON file",
    )
    args = parser.parse_args()

    counts = export_sqlite(args.sqlite_url, args.output)
    print(", ".join(f"{table}={count}" for table, count in counts.items()))


if __name__ == "__main__":
    main()
