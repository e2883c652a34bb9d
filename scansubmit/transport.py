"""
Upload Transport
----------------
One TransportHandle owns one outstanding request. Reactions are plain
callables; exactly one of on_complete/on_error fires per handle, and none
fire after abort().

HttpxTransportHandle runs the POST as a task on the asyncio loop and streams
the body in chunks so upload progress can be reported.
"""

from __future__ import annotations

import asyncio
from typing import AsyncIterator, Callable, Dict, Optional, Protocol

import httpx

from scansubmit.observability.logging import log
from scansubmit.settings import settings

ProgressFn = Callable[[int, int], None]
CompleteFn = Callable[[bytes, int], None]
ErrorFn = Callable[[BaseException], None]


class TransportHandle(Protocol):
    def send(
        self,
        body: bytes,
        *,
        on_progress: ProgressFn,
        on_complete: CompleteFn,
        on_error: ErrorFn,
    ) -> None: ...

    def abort(self) -> None: ...


class TransportFactory(Protocol):
    def __call__(self, headers: Dict[str, str]) -> TransportHandle: ...


class HttpxTransportHandle:
    def __init__(
        self,
        client: httpx.AsyncClient,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        *,
        chunk_size: Optional[int] = None,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ):
        self._client = client
        self._url = url
        self._headers = dict(headers or {})
        self._chunk_size = max(1, int(chunk_size or settings.UPLOAD_CHUNK_BYTES))
        self._loop = loop
        self._task: Optional[asyncio.Task] = None
        self._aborted = False
        self._finished = False

    @property
    def finished(self) -> bool:
        return self._finished

    async def _chunks(self, body: bytes, on_progress: ProgressFn) -> AsyncIterator[bytes]:
        total = len(body)
        sent = 0
        while sent < total:
            chunk = body[sent:sent + self._chunk_size]
            yield chunk
            sent += len(chunk)
            if not self._aborted:
                on_progress(sent, total)

    async def _run(self, body: bytes, on_progress: ProgressFn, on_complete: CompleteFn, on_error: ErrorFn) -> None:
        headers = dict(self._headers)
        headers["Content-Length"] = str(len(body))
        try:
            resp = await self._client.post(self._url, content=self._chunks(body, on_progress), headers=headers)
        except Exception as e:
            if self._aborted:
                return
            self._finished = True
            self._react(on_error, e)
            return
        if self._aborted:
            return
        self._finished = True
        self._react(on_complete, resp.content, int(resp.status_code))

    def _react(self, fn: Callable[..., None], *args) -> None:
        try:
            fn(*args)
        except Exception as e:
            log(event="transport_reaction_exception", url=self._url,
                reaction=getattr(fn, "__name__", "reaction"), errorType=type(e).__name__, error=str(e)[:300])

    def send(self, body: bytes, *, on_progress: ProgressFn, on_complete: CompleteFn, on_error: ErrorFn) -> None:
        if self._task is not None:
            raise RuntimeError("TransportHandle already used; acquire a fresh handle per attempt")
        if self._aborted:
            return
        loop = self._loop or asyncio.get_running_loop()
        self._task = loop.create_task(self._run(body, on_progress, on_complete, on_error))

    def abort(self) -> None:
        if self._aborted:
            return
        self._aborted = True
        if self._task is not None and not self._task.done():
            self._task.cancel()
            try:
                log(event="transport_aborted", url=self._url)
            except Exception:
                pass

    async def wait(self) -> None:
        """Await the in-flight task (if any); used by runners and tests."""
        if self._task is None:
            return
        try:
            await self._task
        except asyncio.CancelledError:
            pass


class HttpxTransportFactory:
    """Hands out a fresh HttpxTransportHandle per attempt, sharing one AsyncClient."""

    def __init__(
        self,
        url: Optional[str] = None,
        *,
        client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ):
        self.url = url or (settings.SCAN_SERVICE_BASE_URL.rstrip("/") + settings.ENROLLMENT_PATH)
        self._client = client or httpx.AsyncClient(timeout=float(timeout or settings.SUBMIT_TIMEOUT_SEC))
        self._loop = loop
        self.last_handle: Optional[HttpxTransportHandle] = None

    def __call__(self, headers: Dict[str, str]) -> HttpxTransportHandle:
        self.last_handle = HttpxTransportHandle(self._client, self.url, headers, loop=self._loop)
        return self.last_handle

    async def aclose(self) -> None:
        await self._client.aclose()
