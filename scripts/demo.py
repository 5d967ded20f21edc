"""
Demo script running one shopping turn end to end.

Outputs, per turn:
- Classified buyer type and rewritten search query
- Forum discussion summary
- Ranked marketplace listings
- Closing message and any degraded steps

Usage:
    python scripts/demo.py
    python scripts/demo.py --query "bulk office chairs for a 40-person startup"
    python scripts/demo.py --query "cheaper ones?" --prior "noise cancelling headphones"
"""

import argparse
import json
import sys

from zoogent.config import get_logger, log_banner, log_kv, log_section
from zoogent.core import PipelineStage, ZooGentError
from zoogent.services.pipeline import run_pipeline

logger = get_logger(__name__)


def _on_progress(stage: PipelineStage) -> None:
    logger.info("-> stage %d: %s", int(stage), stage.name.lower())


def demo_turn(query: str, prior: str | None = None) -> dict | None:
    """Run one turn and log it in demo format. Returns the TurnResult dict."""
    log_banner(logger, "ZOOGENT SHOPPING DEMO", width=70)
    logger.info('Message: "%s"', query)
    if prior:
        logger.info('Previous message: "%s"', prior)

    try:
        result = run_pipeline(query, prior, on_progress=_on_progress)
    except ZooGentError as exc:
        stage = exc.stage.name.lower() if exc.stage is not None else "unknown"
        logger.error("Turn failed at %s: %s", stage, exc)
        return None

    log_section(logger, "REQUEST")
    log_kv(logger, "Buyer type", result.user_type.value)
    log_kv(logger, "Search query", result.search_query)

    log_section(logger, "FORUM SUMMARY")
    logger.info(result.forum_summary)
    for item in result.forum_results:
        logger.info("  - %s (%s)", item.title, item.domain)

    log_section(logger, "RANKED PRODUCTS")
    for rank, item in enumerate(result.ranked_products, 1):
        logger.info("#%d %s", rank, item.title)
        logger.info("   %s", item.link)

    if result.recommendations:
        log_section(logger, "RECOMMENDED MODELS")
        for name in result.recommendations:
            logger.info("  - %s", name)

    log_banner(logger, "SUMMARY", width=70)
    logger.info(result.summary)
    log_kv(logger, "Products", len(result.ranked_products))
    log_kv(logger, "Degraded steps", ", ".join(result.fallbacks) or "none")

    return result.to_dict()


def main():
    parser = argparse.ArgumentParser(description="Demo shopping pipeline")
    parser.add_argument(
        "--query",
        "-q",
        type=str,
        default="wireless earbuds for running",
        help="Message to send",
    )
    parser.add_argument(
        "--prior",
        "-p",
        type=str,
        default=None,
        help="Previous message, to demo follow-up resolution",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Also print the turn result as JSON",
    )
    args = parser.parse_args()

    result = demo_turn(args.query, args.prior)
    if result is None:
        sys.exit(1)

    if args.json:
        log_section(logger, "JSON OUTPUT")
        print(json.dumps(result, indent=2, ensure_ascii=False))


if __name__ == "__main__":
    main()
