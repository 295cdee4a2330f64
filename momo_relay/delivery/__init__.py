from .payload import build_body, build_headers, encode_payload
from .queue import DeliveryAttempt, DeliveryQueue, DeliveryStats, backoff_delay

__all__ = [
    "DeliveryAttempt",
    "DeliveryQueue",
    "DeliveryStats",
    "backoff_delay",
    "build_body",
    "build_headers",
    "encode_payload",
]
