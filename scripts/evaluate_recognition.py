"""Evaluate one recognition against the local SQLite store and print the decision."""

from __future__ import annotations

import argparse
import json
import sys
from datetime import datetime
from pathlib import Path
from uuid import uuid4

import pytz

sys.path.insert(0, str(Path(__file__).parent.parent))

from recognition_guard.adapters.sqlite_store import SQLiteRecognitionStore
from recognition_guard.config.logging_config import get_logger, setup_logging
from recognition_guard.config.settings import get_settings
from recognition_guard.domain.models import GiverRole, RecognitionEvent
from recognition_guard.use_cases.evaluate_recognition import RecognitionEvaluator

logger = get_logger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Evaluate a recognition for abuse")
    parser.add_argument("--giver", required=True, help="Giver user id")
    parser.add_argument("--recipient", required=True, help="Recipient user id")
    parser.add_argument("--reason", default="", help="Recognition reason text")
    parser.add_argument("--weight", type=float, default=1.0, help="Submitted weight")
    parser.add_argument(
        "--evidence", type=int, default=0, help="Number of attached evidence items"
    )
    parser.add_argument(
        "--role",
        choices=[role.value for role in GiverRole],
        default=GiverRole.MEMBER.value,
        help="Giver role",
    )
    parser.add_argument(
        "--record",
        action="store_true",
        help="Store the recognition (with its effective weight) after evaluation",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Emit logs in JSON format",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)

    settings = get_settings()
    setup_logging(settings.log_level, json_logs=args.json_logs or settings.log_json)

    store = SQLiteRecognitionStore(settings.db_path)
    evaluator = RecognitionEvaluator.from_store(store, settings.detection_thresholds())

    event = RecognitionEvent(
        recognition_id=str(uuid4()),
        giver_id=args.giver,
        recipient_id=args.recipient,
        reason=args.reason,
        weight=args.weight,
        evidence_count=args.evidence,
        giver_role=GiverRole(args.role),
        created_at=datetime.now(tz=pytz.UTC),
    )
    result = evaluator.evaluate(event)

    if args.record:
        store.add_recognition(
            event.model_copy(update={"weight": result.effective_weight})
        )
        logger.info(
            "recognition_recorded",
            recognition_id=event.recognition_id,
            weight=result.effective_weight,
        )

    print(json.dumps(result.model_dump(mode="json"), indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
