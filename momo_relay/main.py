from __future__ import annotations

# Plan:
# 1) Load config, wire classifier + dedup + delivery queue into a capture pipeline.
# 2) Feed it from a JSON-lines replay file or a synthetic test payload, then drain.
# 3) Serve permission-gated queries against the SQLite message store.

import argparse
import asyncio
import json
import logging
from pathlib import Path
import sys

from .config import Config, load_config
from .dedup import RecentPayloads
from .delivery.queue import DeliveryQueue
from .errors import RelayError
from .events import NotificationEvent
from .extractor import TransactionPayload
from .permissions import PermissionGate, StaticPermissionProvider
from .pipeline import CapturePipeline
from .query import QueryEngine, QueryFilter
from .store.sqlite import SqliteMessageStore


async def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    if args.init_config:
        _init_config(Path(args.config))
        return 0
    config = load_config(args.config)
    _configure_logging(args.verbose)

    if args.query:
        return _run_query(config, args)

    if not config.delivery.endpoint:
        raise SystemExit("delivery.endpoint must be set to an http(s) URL in the config")

    async with DeliveryQueue(config.delivery) as queue:
        if args.test_deliver:
            queue.enqueue(_build_test_payload())
        elif args.replay:
            pipeline = _build_pipeline(config, queue)
            _replay(Path(args.replay), pipeline)
            stats = pipeline.stats
            logging.getLogger(__name__).info(
                "Replay captured %s: %s enqueued, %s skipped, %s duplicates, %s failed",
                stats.captured,
                stats.enqueued,
                stats.skipped,
                stats.duplicates,
                stats.failed,
            )
        else:
            raise SystemExit("Nothing to do: pass --replay, --test-deliver or --query")
        await queue.drain()
        logging.getLogger(__name__).info(
            "Delivery complete: %s delivered, %s retried, %s dropped",
            queue.stats.delivered,
            queue.stats.retried,
            queue.stats.dropped,
        )
        return 0 if queue.stats.dropped == 0 else 1


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Mobile money notification relay")
    parser.add_argument("--config", default="./config.yaml")
    parser.add_argument("--verbose", action="store_true")
    parser.add_argument("--init-config", action="store_true", help="Create a config.yaml template and exit")
    parser.add_argument("--test-deliver", action="store_true", help="Send a synthetic payload and exit")
    parser.add_argument("--replay", metavar="PATH", help="JSON-lines file of notification events")
    parser.add_argument("--query", action="store_true", help="Query the message store and print JSON")
    parser.add_argument("--sender", help="Sender substring filter for --query")
    parser.add_argument("--since", type=int, help="Only messages at or after this epoch-ms timestamp")
    parser.add_argument("--limit", type=int, help="Maximum number of messages to return")
    return parser.parse_args(argv)


def _configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(message)s")


def _init_config(target: Path) -> None:
    if target.exists():
        raise SystemExit(f"Config already exists at {target}")
    root = Path(__file__).resolve().parents[1]
    template = root / "config.example.yaml"
    if not template.exists():
        raise SystemExit("config.example.yaml not found")
    target.write_text(template.read_text(encoding="utf-8"), encoding="utf-8")
    print(f"Wrote config template to {target}")


def _build_pipeline(config: Config, queue: DeliveryQueue) -> CapturePipeline:
    dedup = RecentPayloads(config.dedup.window_seconds) if config.dedup.enabled else None
    return CapturePipeline(config.classifier, queue, dedup)


def _replay(path: Path, pipeline: CapturePipeline) -> None:
    logger = logging.getLogger(__name__)
    with open(path, "r", encoding="utf-8") as handle:
        for line_no, line in enumerate(handle, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                event = NotificationEvent.from_dict(json.loads(line))
            except (ValueError, TypeError, AttributeError) as exc:
                logger.warning("Skipping malformed event on line %s: %s", line_no, exc)
                continue
            pipeline.on_notification_posted(event)


def _run_query(config: Config, args: argparse.Namespace) -> int:
    gate = PermissionGate(StaticPermissionProvider(config.permissions.granted_scopes))
    engine = QueryEngine(gate, SqliteMessageStore(config.query.store_path), config.query)
    query_filter = QueryFilter(sender_pattern=args.sender, since_timestamp_ms=args.since, limit=args.limit)
    try:
        result = engine.query(query_filter)
    except RelayError as exc:
        print(json.dumps(exc.to_dict()), file=sys.stderr)
        return 2
    print(json.dumps(result.to_dict(), ensure_ascii=False, indent=2))
    return 0


def _build_test_payload() -> TransactionPayload:
    return TransactionPayload(
        source_app="momo-relay.test",
        title="momo-relay test",
        text="momo-relay test This is a synthetic payload to verify the ingestion endpoint.",
        big="This is a synthetic payload to verify the ingestion endpoint.",
        ticker="",
    )


def run() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
