"""Print abuse flag statistics from the local SQLite store."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from recognition_guard.adapters.sqlite_store import SQLiteRecognitionStore
from recognition_guard.config.logging_config import setup_logging
from recognition_guard.config.settings import get_settings
from recognition_guard.services.flag_report import summarize_flags


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Summarize stored abuse flags")
    parser.add_argument(
        "--db-path",
        default=None,
        help="SQLite database path (defaults to configured storage.db_path)",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)

    settings = get_settings()
    setup_logging(settings.log_level, json_logs=settings.log_json)

    store = SQLiteRecognitionStore(args.db_path or settings.db_path)
    statistics = summarize_flags(store.list_flags())
    print(json.dumps(statistics.model_dump(), indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
