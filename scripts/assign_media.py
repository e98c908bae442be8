#!/usr/bin/env python3
"""Assign media to the scenes of a script.

Reads scenes from a JSON file, matches them against the local media pool
and acquires media for the rest (stock video → stock photo → AI image).
Writes the updated scenes and the run summary as JSON.

Input is either a list of scenes or an object with a ``scenes`` list:

    [
      {"id": "s1", "start": 0.0, "end": 2.5, "text": "...", "keyword": "sunset"},
      ...
    ]

Usage:
    # Match and acquire
    python scripts/assign_media.py scenes.json -o assigned.json

    # Local matching only (no network)
    python scripts/assign_media.py scenes.json --match-only

    # Replace existing assignments, allow reusing assets
    python scripts/assign_media.py scenes.json --all-scenes --overwrite --allow-duplicates

Ctrl+C cancels the run; scenes finished so far keep their media.
"""

import argparse
import asyncio
import json
import logging
import signal
import sys
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

from clipbinder.core.container import get_container, shutdown  # noqa: E402
from clipbinder.core.logging import setup_logging  # noqa: E402
from clipbinder.models import AssignmentOptions, ProgressEvent, Scene  # noqa: E402
from clipbinder.services.acquisition import CancelToken  # noqa: E402

logger = logging.getLogger(__name__)


def load_scenes(path: Path) -> list[Scene]:
    """Load scenes from a JSON file."""
    data = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(data, dict):
        data = data.get("scenes", [])
    return [Scene.model_validate(item) for item in data]


def print_progress(event: ProgressEvent) -> None:
    """Render one progress event as a log line."""
    eta = f", eta {event.eta_seconds:.0f}s" if event.eta_seconds is not None else ""
    detail = event.filename or event.error or event.provider or ""
    label = event.keyword or event.scene_id
    logger.info(
        f"[{event.completed}/{event.total}] #{event.video_index} {label}: "
        f"{event.status.value} {event.progress:.0f}% {detail}{eta}"
    )


async def assign_media(
    scenes_path: Path,
    output_path: Path,
    options: AssignmentOptions,
    match_only: bool,
) -> dict[str, Any]:
    """Run matching (and acquisition) for a scene file.

    Args:
        scenes_path: Input JSON
        output_path: Output JSON
        options: Matching policy
        match_only: Skip acquisition

    Returns:
        Result document that was written
    """
    container = get_container()
    index = container.asset_index()
    index.scan()

    scenes = load_scenes(scenes_path)
    logger.info(f"Loaded {len(scenes)} scenes from {scenes_path}")

    if match_only:
        engine = container.matching_engine()
        updated, stats = engine.match(scenes, index.snapshot(), options)
        result = {
            "scenes": [s.model_dump(mode="json") for s in updated],
            "assignment": stats.model_dump(mode="json"),
        }
    else:
        token = CancelToken()
        loop = asyncio.get_running_loop()
        try:
            loop.add_signal_handler(signal.SIGINT, token.cancel, "interrupted")
        except NotImplementedError:
            # Windows event loops have no signal handlers
            pass

        orchestrator = container.orchestrator()
        try:
            updated, summary = await orchestrator.run(
                scenes, options, on_progress=print_progress, cancel_token=token
            )
        finally:
            await shutdown(container)

        result = {
            "scenes": [s.model_dump(mode="json") for s in updated],
            "summary": summary.model_dump(mode="json", exclude={"jobs"}),
        }
        logger.info("=" * 60)
        logger.info(f"Assigned:  {summary.success}/{summary.total}")
        logger.info(f"Local:     {summary.matched_locally}")
        logger.info(f"Acquired:  {summary.acquired} {summary.by_provider}")
        logger.info(f"Failed:    {summary.failed}")
        if summary.cancelled:
            logger.info("Run was cancelled; partial results written")
        logger.info("=" * 60)

    output_path.write_text(json.dumps(result, indent=2, ensure_ascii=False), encoding="utf-8")
    logger.info(f"Results written to {output_path}")
    return result


def main() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Assign local or acquired media to script scenes",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/assign_media.py scenes.json -o assigned.json
  python scripts/assign_media.py scenes.json --match-only --min-score 0.3
        """,
    )

    parser.add_argument("scenes", type=Path, help="Scene JSON file")
    parser.add_argument(
        "--output",
        "-o",
        type=Path,
        default=None,
        help="Output JSON file (default: <scenes>.assigned.json)",
    )
    parser.add_argument(
        "--match-only",
        action="store_true",
        help="Only assign already-downloaded media",
    )
    parser.add_argument(
        "--all-scenes",
        action="store_true",
        help="Consider scenes that already have media (with --overwrite)",
    )
    parser.add_argument("--overwrite", action="store_true", help="Replace existing media")
    parser.add_argument(
        "--allow-duplicates",
        action="store_true",
        help="Allow one asset on several scenes",
    )
    parser.add_argument("--no-keywords", action="store_true", help="Disable keyword matching")
    parser.add_argument("--no-order", action="store_true", help="Disable positional fallback")
    parser.add_argument(
        "--min-score",
        type=float,
        default=0.5,
        help="Minimum keyword match score (default: 0.5)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Override LOG_LEVEL from the environment",
    )

    args = parser.parse_args()

    setup_logging(args.log_level)

    options = AssignmentOptions(
        empty_only=not args.all_scenes,
        by_keywords=not args.no_keywords,
        by_order=not args.no_order,
        overwrite=args.overwrite,
        allow_duplicates=args.allow_duplicates,
        min_score=args.min_score,
    )

    try:
        output = args.output or args.scenes.with_suffix(".assigned.json")
        asyncio.run(assign_media(args.scenes, output, options, args.match_only))
    except KeyboardInterrupt:
        logger.info("\nAssignment cancelled by user")
        sys.exit(1)
    except Exception as e:
        logger.error(f"Assignment failed: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
