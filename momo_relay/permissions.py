from __future__ import annotations

from abc import ABC, abstractmethod
import asyncio
from dataclasses import dataclass, field
from enum import Enum
import logging
from typing import Any, Iterable

from .config import DEFAULT_SCOPES


DENIED_MESSAGE = "SMS permissions denied by user"


class PermissionState(str, Enum):
    UNKNOWN = "unknown"
    REQUESTED = "requested"
    GRANTED = "granted"
    DENIED = "denied"


@dataclass
class PermissionCheck:
    granted: bool
    detail: dict[str, bool] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"granted": self.granted}
        result.update(self.detail)
        return result


@dataclass
class PermissionRequestResult:
    granted: bool
    message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"granted": self.granted}
        if self.message:
            result["message"] = self.message
        return result


class PermissionProvider(ABC):
    """Adapter to whatever reports and prompts for OS permissions."""

    @abstractmethod
    def status(self) -> dict[str, bool]:
        """Current grant flag per scope."""
        raise NotImplementedError

    @abstractmethod
    async def prompt(self) -> None:
        """Show the OS prompt and return once the user has decided."""
        raise NotImplementedError


class StaticPermissionProvider(PermissionProvider):
    """Provider with fixed flags, for hosts without an interactive prompt."""

    def __init__(
        self,
        granted_scopes: Iterable[str] = (),
        scopes: Iterable[str] = DEFAULT_SCOPES,
        grant_on_prompt: bool = False,
    ) -> None:
        granted = set(granted_scopes)
        self._flags = {scope: scope in granted for scope in scopes}
        self._grant_on_prompt = grant_on_prompt
        self.prompt_count = 0

    def status(self) -> dict[str, bool]:
        return dict(self._flags)

    async def prompt(self) -> None:
        self.prompt_count += 1
        if self._grant_on_prompt:
            self._flags = {scope: True for scope in self._flags}


class PermissionGate:
    """Tracks access to the message store and coalesces permission prompts.

    check() is a read of the provider's flags and never prompts. request()
    is single-flight: while a prompt is open every caller awaits the same
    outcome. A denial is reported once and never retried by the gate itself.
    """

    def __init__(self, provider: PermissionProvider) -> None:
        self._provider = provider
        self._logger = logging.getLogger(__name__)
        self._state = PermissionState.UNKNOWN
        self._inflight: asyncio.Task[PermissionRequestResult] | None = None

    @property
    def state(self) -> PermissionState:
        return self._state

    def check(self) -> PermissionCheck:
        detail = self._provider.status()
        granted = bool(detail) and all(detail.values())
        if granted and self._state is PermissionState.UNKNOWN:
            self._state = PermissionState.GRANTED
        return PermissionCheck(granted=granted, detail=detail)

    async def request(self) -> PermissionRequestResult:
        if self._inflight is None or self._inflight.done():
            if self.check().granted:
                self._state = PermissionState.GRANTED
                return PermissionRequestResult(granted=True)
            self._state = PermissionState.REQUESTED
            self._logger.info("Requesting message store permissions")
            self._inflight = asyncio.ensure_future(self._run_prompt())
        # Shielded so one cancelled caller does not cancel the prompt for the rest.
        return await asyncio.shield(self._inflight)

    async def _run_prompt(self) -> PermissionRequestResult:
        try:
            await self._provider.prompt()
        except Exception as exc:
            self._logger.error("Permission prompt failed: %s", exc)
            self._state = PermissionState.UNKNOWN
            return PermissionRequestResult(granted=False, message="Permission request failed")

        if self.check().granted:
            self._state = PermissionState.GRANTED
            self._logger.info("Message store permissions granted")
            return PermissionRequestResult(granted=True)

        self._state = PermissionState.DENIED
        self._logger.warning("Message store permissions denied")
        return PermissionRequestResult(granted=False, message=DENIED_MESSAGE)
