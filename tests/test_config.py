from __future__ import annotations

import os
from pathlib import Path
import tempfile
import unittest
from unittest.mock import patch

from momo_relay.config import DEFAULT_SENDER_HINTS, load_config, parse_config


class ConfigTests(unittest.TestCase):
    def test_defaults_when_sections_missing(self) -> None:
        config = parse_config({})
        self.assertIsNone(config.delivery.endpoint)
        self.assertEqual(config.delivery.max_attempts, 5)
        self.assertEqual(config.delivery.connect_timeout_seconds, 8.0)
        self.assertEqual(config.classifier.sender_hints, DEFAULT_SENDER_HINTS)
        self.assertIn("rw.mtn.momo", config.classifier.allowed_apps)
        self.assertEqual(config.query.max_limit, 500)
        self.assertTrue(config.dedup.enabled)

    def test_env_expansion(self) -> None:
        with patch.dict(os.environ, {"RELAY_URL": "https://ingest.example.com/hook", "RELAY_TOKEN": "abc"}):
            config = parse_config({"delivery": {"endpoint": "${RELAY_URL}", "bearer_token": "${RELAY_TOKEN}"}})
        self.assertEqual(config.delivery.endpoint, "https://ingest.example.com/hook")
        self.assertEqual(config.delivery.bearer_token, "abc")

    def test_unexpanded_placeholder_is_unset(self) -> None:
        with patch.dict(os.environ, {}, clear=True):
            config = parse_config({"delivery": {"endpoint": "${MISSING_URL}", "bearer_token": "${MISSING}"}})
        self.assertIsNone(config.delivery.endpoint)
        self.assertIsNone(config.delivery.bearer_token)

    def test_non_http_endpoint_is_unset(self) -> None:
        config = parse_config({"delivery": {"endpoint": "ftp://example.com"}})
        self.assertIsNone(config.delivery.endpoint)

    def test_explicit_empty_hint_list_disables_set(self) -> None:
        config = parse_config({"classifier": {"money_keywords": []}})
        self.assertEqual(config.classifier.money_keywords, [])
        self.assertEqual(config.classifier.hint_tokens, DEFAULT_SENDER_HINTS)

    def test_rejects_invalid_values(self) -> None:
        invalid = [
            {"delivery": {"max_attempts": 0}},
            {"delivery": {"workers": "many"}},
            {"delivery": {"backoff_base_seconds": 5, "backoff_cap_seconds": 1}},
            {"query": {"max_limit": 0}},
            {"classifier": {"sender_hints": "MTN"}},
            {"dedup": {"window_seconds": 0}},
            ["not", "a", "mapping"],
        ]
        for raw in invalid:
            with self.subTest(raw=raw):
                with self.assertRaises(ValueError):
                    parse_config(raw)

    def test_default_limit_never_exceeds_max(self) -> None:
        config = parse_config({"query": {"default_limit": 900, "max_limit": 200}})
        self.assertEqual(config.query.default_limit, 200)

    def test_load_example_config(self) -> None:
        example = Path(__file__).resolve().parents[1] / "config.example.yaml"
        with patch.dict(os.environ, {"MOMO_RELAY_ENDPOINT": "https://ingest.example.com/momo-receipt"}):
            config = load_config(str(example))
        self.assertEqual(config.delivery.endpoint, "https://ingest.example.com/momo-receipt")
        self.assertEqual(config.permissions.granted_scopes, ["readSms", "receiveSms"])

    def test_load_empty_file(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "config.yaml"
            path.write_text("", encoding="utf-8")
            config = load_config(str(path))
        self.assertEqual(config.delivery.workers, 4)
