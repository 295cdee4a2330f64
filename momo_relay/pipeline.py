from __future__ import annotations

from dataclasses import dataclass
import logging

from .classifier import classify
from .config import ClassifierConfig
from .dedup import RecentPayloads
from .delivery.queue import DeliveryQueue
from .errors import ClassificationSkip
from .events import NotificationEvent, NotificationListener
from .extractor import TransactionPayload, extract


@dataclass
class CaptureStats:
    captured: int = 0
    skipped: int = 0
    duplicates: int = 0
    enqueued: int = 0
    failed: int = 0


class CapturePipeline(NotificationListener):
    def __init__(
        self,
        config: ClassifierConfig,
        queue: DeliveryQueue,
        dedup: RecentPayloads | None = None,
    ) -> None:
        self._config = config
        self._queue = queue
        self._dedup = dedup
        self._logger = logging.getLogger(__name__)
        self.stats = CaptureStats()

    def on_notification_posted(self, event: NotificationEvent) -> None:
        self.stats.captured += 1
        try:
            payload = self._prepare(event)
        except ClassificationSkip as skip:
            self.stats.skipped += 1
            self._logger.debug("Skipping notification from %s: %s", event.source_app, skip.message)
            return
        except Exception:
            self.stats.failed += 1
            self._logger.exception("Failed to process notification from %s", event.source_app)
            return

        if payload is None:
            return
        if self._queue.enqueue(payload):
            self.stats.enqueued += 1
            return

        self.stats.failed += 1
        # Let the other listener's copy of this receipt through.
        if self._dedup is not None:
            self._dedup.forget(event)

    def _prepare(self, event: NotificationEvent) -> TransactionPayload | None:
        result = classify(event, self._config)
        if not result.is_candidate:
            raise ClassificationSkip(result.reason)

        payload = extract(event)
        if self._dedup is not None and self._dedup.check_and_mark(event):
            self.stats.duplicates += 1
            self._logger.debug("Duplicate notification from %s suppressed", event.source_app)
            return None

        self._logger.info("Transaction candidate from %s (%s)", event.source_app, result.reason)
        return payload
