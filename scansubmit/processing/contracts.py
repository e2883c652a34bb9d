"""Collaborator interfaces the processor talks to. Implementations live outside this package."""
from __future__ import annotations

from typing import Any, Callable, Protocol

from scansubmit.processing.models import CompletionReport


class ScanResultCallback(Protocol):
    """Signals back into the capture session. All calls are fire-and-forget."""

    def cancel(self) -> None: ...

    def proceed_to_next_step(self, token: str) -> None: ...

    def upload_progress(self, fraction: float) -> None: ...

    def upload_message_override(self, text: str) -> None: ...


class CompletionSink(Protocol):
    def on_complete(self, report: CompletionReport) -> None: ...


class EnrollmentIdentifiers(Protocol):
    def get_current_identifier(self) -> str: ...

    def clear_current_identifier(self) -> None: ...


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Subset of asyncio.AbstractEventLoop used for the stall timer."""

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> TimerHandle: ...
