from __future__ import annotations

from dataclasses import dataclass, field
import os
from typing import Any

import yaml


DEFAULT_ALLOWED_APPS = ["rw.mtn.momo", "com.airtel.money"]
DEFAULT_SENDER_HINTS = ["MTN", "AIRTEL", "AIRTELMONEY", "MTNMOMO", "RW-MTN", "RW-AIRTEL"]
DEFAULT_MONEY_KEYWORDS = ["PAYMENT", "RECEIVED", "MOMO"]
DEFAULT_SCOPES = ["readSms", "receiveSms"]


@dataclass
class DeliveryConfig:
    endpoint: str | None = None
    bearer_token: str | None = None
    connect_timeout_seconds: float = 8.0
    read_timeout_seconds: float = 8.0
    max_attempts: int = 5
    backoff_base_seconds: float = 1.0
    backoff_cap_seconds: float = 60.0
    workers: int = 4
    queue_size: int = 1000
    user_agent: str = "momo-relay/0.1"


@dataclass
class ClassifierConfig:
    allowed_apps: list[str] = field(default_factory=lambda: list(DEFAULT_ALLOWED_APPS))
    sender_hints: list[str] = field(default_factory=lambda: list(DEFAULT_SENDER_HINTS))
    money_keywords: list[str] = field(default_factory=lambda: list(DEFAULT_MONEY_KEYWORDS))

    @property
    def hint_tokens(self) -> list[str]:
        return self.sender_hints + self.money_keywords


@dataclass
class DedupConfig:
    enabled: bool = True
    window_seconds: int = 120


@dataclass
class QueryConfig:
    default_limit: int = 100
    max_limit: int = 500
    store_path: str = "./messages.db"


@dataclass
class PermissionsConfig:
    granted_scopes: list[str] = field(default_factory=list)


@dataclass
class Config:
    delivery: DeliveryConfig = field(default_factory=DeliveryConfig)
    classifier: ClassifierConfig = field(default_factory=ClassifierConfig)
    dedup: DedupConfig = field(default_factory=DedupConfig)
    query: QueryConfig = field(default_factory=QueryConfig)
    permissions: PermissionsConfig = field(default_factory=PermissionsConfig)


def _expand_env(value: Any) -> Any:
    if isinstance(value, str):
        return os.path.expandvars(value)
    if isinstance(value, list):
        return [_expand_env(item) for item in value]
    if isinstance(value, dict):
        return {key: _expand_env(val) for key, val in value.items()}
    return value


def _require_dict(value: Any, name: str) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f"{name} must be a mapping")
    return value


def _require_list(value: Any, name: str) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError(f"{name} must be a list")
    return [str(item) for item in value]


def load_config(path: str) -> Config:
    with open(path, "r", encoding="utf-8") as handle:
        raw = yaml.safe_load(handle) or {}
    return parse_config(raw)


def parse_config(raw: Any) -> Config:
    data = _expand_env(raw)
    if not isinstance(data, dict):
        raise ValueError("Config root must be a mapping")

    return Config(
        delivery=_load_delivery(_require_dict(data.get("delivery"), "delivery")),
        classifier=_load_classifier(_require_dict(data.get("classifier"), "classifier")),
        dedup=_load_dedup(_require_dict(data.get("dedup"), "dedup")),
        query=_load_query(_require_dict(data.get("query"), "query")),
        permissions=PermissionsConfig(
            granted_scopes=_require_list(
                _require_dict(data.get("permissions"), "permissions").get("granted_scopes"),
                "permissions.granted_scopes",
            )
        ),
    )


def _load_delivery(raw: dict[str, Any]) -> DeliveryConfig:
    defaults = DeliveryConfig()
    max_attempts = _parse_int(raw.get("max_attempts", defaults.max_attempts), "delivery.max_attempts")
    if max_attempts < 1:
        raise ValueError("delivery.max_attempts must be >= 1")
    workers = _parse_int(raw.get("workers", defaults.workers), "delivery.workers")
    if workers < 1:
        raise ValueError("delivery.workers must be >= 1")
    queue_size = _parse_int(raw.get("queue_size", defaults.queue_size), "delivery.queue_size")
    if queue_size < 0:
        raise ValueError("delivery.queue_size must be >= 0")

    base = _parse_positive_float(
        raw.get("backoff_base_seconds", defaults.backoff_base_seconds), "delivery.backoff_base_seconds"
    )
    cap = _parse_positive_float(
        raw.get("backoff_cap_seconds", defaults.backoff_cap_seconds), "delivery.backoff_cap_seconds"
    )
    if cap < base:
        raise ValueError("delivery.backoff_cap_seconds must be >= delivery.backoff_base_seconds")

    return DeliveryConfig(
        endpoint=_normalize_endpoint(raw.get("endpoint")),
        bearer_token=_normalize_token(raw.get("bearer_token")),
        connect_timeout_seconds=_parse_positive_float(
            raw.get("connect_timeout_seconds", defaults.connect_timeout_seconds),
            "delivery.connect_timeout_seconds",
        ),
        read_timeout_seconds=_parse_positive_float(
            raw.get("read_timeout_seconds", defaults.read_timeout_seconds),
            "delivery.read_timeout_seconds",
        ),
        max_attempts=max_attempts,
        backoff_base_seconds=base,
        backoff_cap_seconds=cap,
        workers=workers,
        queue_size=queue_size,
        user_agent=str(raw.get("user_agent", defaults.user_agent)),
    )


def _load_classifier(raw: dict[str, Any]) -> ClassifierConfig:
    # Missing keys keep the defaults; an explicit empty list disables that set.
    return ClassifierConfig(
        allowed_apps=_list_or_default(raw, "allowed_apps", DEFAULT_ALLOWED_APPS, "classifier"),
        sender_hints=_list_or_default(raw, "sender_hints", DEFAULT_SENDER_HINTS, "classifier"),
        money_keywords=_list_or_default(raw, "money_keywords", DEFAULT_MONEY_KEYWORDS, "classifier"),
    )


def _load_dedup(raw: dict[str, Any]) -> DedupConfig:
    window = _parse_int(raw.get("window_seconds", 120), "dedup.window_seconds")
    if window < 1:
        raise ValueError("dedup.window_seconds must be >= 1")
    return DedupConfig(enabled=bool(raw.get("enabled", True)), window_seconds=window)


def _load_query(raw: dict[str, Any]) -> QueryConfig:
    max_limit = _parse_int(raw.get("max_limit", 500), "query.max_limit")
    if max_limit < 1:
        raise ValueError("query.max_limit must be >= 1")
    default_limit = _parse_int(raw.get("default_limit", 100), "query.default_limit")
    if default_limit < 1:
        raise ValueError("query.default_limit must be >= 1")
    return QueryConfig(
        default_limit=min(default_limit, max_limit),
        max_limit=max_limit,
        store_path=str(raw.get("store_path", "./messages.db")),
    )


def _list_or_default(raw: dict[str, Any], key: str, default: list[str], section: str) -> list[str]:
    if key not in raw:
        return list(default)
    return [item for item in _require_list(raw.get(key), f"{section}.{key}") if item.strip()]


def _parse_int(value: Any, name: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValueError(f"{name} must be an integer")


def _parse_positive_float(value: Any, name: str) -> float:
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"{name} must be a number")
    if parsed <= 0:
        raise ValueError(f"{name} must be > 0")
    return parsed


def _normalize_endpoint(value: Any) -> str | None:
    if not value or not isinstance(value, str):
        return None
    if "${" in value:
        return None
    if not (value.startswith("http://") or value.startswith("https://")):
        return None
    return value


def _normalize_token(value: Any) -> str | None:
    if not value or not isinstance(value, str):
        return None
    if "${" in value:
        return None
    return value.strip() or None
