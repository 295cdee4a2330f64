from __future__ import annotations

import json
from typing import Any

from ..config import DeliveryConfig
from ..extractor import TransactionPayload


CONTENT_TYPE = "application/json; charset=utf-8"


def build_body(payload: TransactionPayload) -> dict[str, Any]:
    return {
        "package": payload.source_app,
        "title": payload.title,
        "text": payload.text,
        "big": payload.big,
        "ticker": payload.ticker,
    }


def encode_payload(payload: TransactionPayload) -> bytes:
    # json.dumps escapes backslash, double quote, newline and the remaining
    # control characters, so any standard decoder gets the fields back intact.
    body = json.dumps(build_body(payload), ensure_ascii=False, separators=(",", ":"))
    return body.encode("utf-8")


def build_headers(config: DeliveryConfig) -> dict[str, str]:
    headers = {
        "Content-Type": CONTENT_TYPE,
        "User-Agent": config.user_agent,
    }
    if config.bearer_token:
        headers["Authorization"] = _authorization(config.bearer_token)
    return headers


def _authorization(token: str) -> str:
    if token.lower().startswith("bearer "):
        return token
    return f"Bearer {token}"
