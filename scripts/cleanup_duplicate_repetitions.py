from __future__ import annotations

import argparse
import pathlib
import sys

# Ensure the repository root is on the path for direct script runs.
REPO_ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.append(str(REPO_ROOT))

from app import create_app
from models import REPETITION
from services.selector import reconcile_repetitions
from services.store import ProblemStore
from utils.logging_config import get_logger

logger = get_logger(__name__)


def find_duplicate_groups(store: ProblemStore) -> dict[int, int]:
    """Anchor id -> number of incomplete repetitions, for anchors with more than one."""
    counts: dict[int, int] = {}
    for repetition in store.find_by_filter({"kind": REPETITION, "is_completed": False, "original_ref__isnull": False}):
        counts[repetition.original_ref] = counts.get(repetition.original_ref, 0) + 1
    return {anchor_id: count for anchor_id, count in counts.items() if count > 1}


def cleanup_duplicate_repetitions(store: ProblemStore, dry_run: bool = False) -> dict[str, int]:
    groups = find_duplicate_groups(store)
    deleted = 0
    for anchor_id, count in sorted(groups.items()):
        survivor, removed = reconcile_repetitions(anchor_id, None, store, dry_run=dry_run)
        logger.info(
            "Anchor %s: %d incomplete repetitions, keeping %s%s",
            anchor_id,
            count,
            survivor.id if survivor else "none",
            " (dry run)" if dry_run else "",
        )
        deleted += removed
    return {"anchors": len(groups), "kept": len(groups), "deleted": deleted}


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Merge duplicate incomplete repetition records.")
    parser.add_argument("--dry-run", action="store_true", help="Report duplicates without deleting them")
    args = parser.parse_args(argv)

    app = create_app()
    with app.app_context():
        summary = cleanup_duplicate_repetitions(ProblemStore(), dry_run=args.dry_run)

    print(f"Problems with duplicates: {summary['anchors']}")
    print(f"Repetition entries kept: {summary['kept']}")
    print(f"Repetition entries {'to delete' if args.dry_run else 'deleted'}: {summary['deleted']}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
