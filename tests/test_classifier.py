from __future__ import annotations

import unittest

from momo_relay.classifier import classify, normalize_text
from momo_relay.config import ClassifierConfig
from momo_relay.events import NotificationEvent


def _event(
    source_app: str = "com.google.android.apps.messaging",
    title: str | None = None,
    text: str | None = None,
    big_text: str | None = None,
    ticker: str | None = None,
) -> NotificationEvent:
    return NotificationEvent(
        source_app=source_app,
        title=title,
        text=text,
        big_text=big_text,
        ticker=ticker,
    )


class ClassifierTests(unittest.TestCase):
    def setUp(self) -> None:
        self.config = ClassifierConfig()

    def test_sender_hint_any_case_is_candidate(self) -> None:
        result = classify(_event(title="mtn", text="Your balance is 200 RWF"), self.config)
        self.assertTrue(result.is_candidate)
        self.assertIn("MTN", result.matched_hints)

    def test_money_keyword_is_candidate(self) -> None:
        result = classify(_event(title="Bank", text="Payment of 2000 RWF confirmed"), self.config)
        self.assertTrue(result.is_candidate)
        self.assertEqual(result.matched_hints, {"PAYMENT"})

    def test_records_every_matched_hint(self) -> None:
        result = classify(_event(title="MTN MoMo", big_text="You have received 5000 RWF"), self.config)
        self.assertTrue(result.is_candidate)
        self.assertTrue({"MTN", "MOMO", "RECEIVED"} <= result.matched_hints)

    def test_unrelated_notification_is_not_candidate(self) -> None:
        result = classify(_event(title="Mum", text="Dinner at 7?"), self.config)
        self.assertFalse(result.is_candidate)
        self.assertEqual(result.matched_hints, set())

    def test_allow_listed_app_is_always_candidate(self) -> None:
        result = classify(_event(source_app="rw.mtn.momo", title="Hello", text="Welcome back"), self.config)
        self.assertTrue(result.is_candidate)
        self.assertIn("allow-listed", result.reason)

    def test_empty_text_is_never_candidate(self) -> None:
        result = classify(_event(source_app="rw.mtn.momo"), self.config)
        self.assertFalse(result.is_candidate)
        result = classify(_event(source_app="rw.mtn.momo", title="", text=""), self.config)
        self.assertFalse(result.is_candidate)

    def test_big_text_preferred_over_text(self) -> None:
        event = _event(title="Title", text="short", big_text="Long Body", ticker="Tick")
        self.assertEqual(normalize_text(event), "title long body tick")

    def test_text_used_when_big_text_missing(self) -> None:
        event = _event(title=None, text="Only Text", ticker=None)
        self.assertEqual(normalize_text(event), "only text")

    def test_hint_only_in_ignored_text_does_not_match(self) -> None:
        # text is shadowed by big_text and so never scanned
        event = _event(title="Note", text="MTN", big_text="See you tomorrow")
        self.assertFalse(classify(event, self.config).is_candidate)

    def test_custom_hint_tokens(self) -> None:
        config = ClassifierConfig(allowed_apps=[], sender_hints=["M-Money"], money_keywords=[])
        self.assertTrue(classify(_event(title="M-MONEY", text="Cash in"), config).is_candidate)
        self.assertFalse(classify(_event(title="MTN", text="Payment"), config).is_candidate)
