from __future__ import annotations

import unittest
from unittest.mock import MagicMock, patch

from momo_relay.config import ClassifierConfig
from momo_relay.dedup import RecentPayloads
from momo_relay.events import NotificationEvent
from momo_relay.pipeline import CapturePipeline


def _queue(accept: bool = True) -> MagicMock:
    queue = MagicMock()
    queue.enqueue.return_value = accept
    return queue


class CapturePipelineTests(unittest.TestCase):
    def test_candidate_is_extracted_and_enqueued(self) -> None:
        queue = _queue()
        pipeline = CapturePipeline(ClassifierConfig(), queue)

        pipeline.on_notification_posted(
            NotificationEvent(source_app="rw.mtn.momo", title="MTN MoMo", big_text="You received 5000 RWF")
        )

        queue.enqueue.assert_called_once()
        payload = queue.enqueue.call_args.args[0]
        self.assertEqual(payload.text, "MTN MoMo You received 5000 RWF")
        self.assertEqual(pipeline.stats.enqueued, 1)

    def test_non_candidate_is_skipped(self) -> None:
        queue = _queue()
        pipeline = CapturePipeline(ClassifierConfig(), queue)

        pipeline.on_notification_posted(NotificationEvent(source_app="chat", title="Bob", text="lunch?"))

        queue.enqueue.assert_not_called()
        self.assertEqual(pipeline.stats.skipped, 1)

    def test_duplicate_from_second_listener_is_suppressed(self) -> None:
        queue = _queue()
        pipeline = CapturePipeline(ClassifierConfig(), queue, RecentPayloads(window_seconds=120))

        pipeline.on_notification_posted(
            NotificationEvent(source_app="rw.mtn.momo", title="MTN MoMo", big_text="You received 5000 RWF")
        )
        pipeline.on_notification_posted(
            NotificationEvent(source_app="com.android.messaging", title="M-Money", text="You received 5000 RWF")
        )

        self.assertEqual(queue.enqueue.call_count, 1)
        self.assertEqual(pipeline.stats.duplicates, 1)

    def test_internal_failure_never_reaches_host(self) -> None:
        queue = _queue()
        pipeline = CapturePipeline(ClassifierConfig(), queue)

        with patch("momo_relay.pipeline.extract", side_effect=RuntimeError("boom")):
            with self.assertLogs("momo_relay.pipeline", level="ERROR"):
                pipeline.on_notification_posted(
                    NotificationEvent(source_app="rw.mtn.momo", title="MTN", text="Payment")
                )

        queue.enqueue.assert_not_called()
        self.assertEqual(pipeline.stats.failed, 1)

    def test_rejected_enqueue_counts_as_failure(self) -> None:
        pipeline = CapturePipeline(ClassifierConfig(), _queue(accept=False))
        pipeline.on_notification_posted(NotificationEvent(source_app="rw.mtn.momo", title="MTN", text="Payment"))
        self.assertEqual(pipeline.stats.failed, 1)
        self.assertEqual(pipeline.stats.enqueued, 0)


class NotificationEventTests(unittest.TestCase):
    def test_from_dict_accepts_wire_keys(self) -> None:
        event = NotificationEvent.from_dict(
            {"package": "rw.mtn.momo", "title": "MTN", "big": "Received", "capturedAt": 1_700_000_000_000}
        )
        self.assertEqual(event.source_app, "rw.mtn.momo")
        self.assertEqual(event.big_text, "Received")
        self.assertEqual(int(event.captured_at.timestamp()), 1_700_000_000)

    def test_from_dict_parses_iso_timestamp(self) -> None:
        event = NotificationEvent.from_dict({"sourceApp": "x", "bigText": "b", "capturedAt": "2024-05-01T12:00:00Z"})
        self.assertEqual(event.captured_at.isoformat(), "2024-05-01T12:00:00+00:00")

    def test_from_dict_requires_source_app(self) -> None:
        with self.assertRaises(ValueError):
            NotificationEvent.from_dict({"title": "MTN"})


class RejectedEnqueueTests(unittest.TestCase):
    def test_rejected_copy_does_not_suppress_other_listener(self) -> None:
        queue = MagicMock()
        queue.enqueue.side_effect = [False, True]
        pipeline = CapturePipeline(ClassifierConfig(), queue, RecentPayloads(window_seconds=120))

        pipeline.on_notification_posted(
            NotificationEvent(source_app="rw.mtn.momo", title="MTN MoMo", big_text="You received 5000 RWF")
        )
        pipeline.on_notification_posted(
            NotificationEvent(source_app="com.android.messaging", title="M-Money", text="You received 5000 RWF")
        )

        self.assertEqual(queue.enqueue.call_count, 2)
        self.assertEqual(pipeline.stats.duplicates, 0)
        self.assertEqual(pipeline.stats.failed, 1)
        self.assertEqual(pipeline.stats.enqueued, 1)
