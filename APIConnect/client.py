"""
Dispatch coordinator: reachability check, middleware chain, transport call,
per-call progress correlation and response decoding.
"""

import asyncio
import threading
from dataclasses import replace
from typing import Any, Callable, Dict, Generic, Iterable, Optional, Set, Tuple, TypeVar, Union

from .config import Configuration
from .decoding import Request, RequestRepresentable
from .exceptions import NoInternetConnection, WrongUsage
from .middlewares import BasicResponder, Middleware, Middlewares, make_responder
from .models import HTTPRequest, HTTPResponse, JSONBody
from .reachability import Reachability, StaticReachability
from .transport import CallToken, HTTPClientTransport, Transport

T = TypeVar("T")

ProgressSink = Callable[[float], None]


class ProgressTable:
    """Routes transport progress events to the sink of the call they belong to.

    Entries are added when a call is dispatched and removed when it
    completes, fails or is cancelled.
    """

    def __init__(self):
        self._entries: Dict[CallToken, Tuple[ProgressSink, Optional[asyncio.AbstractEventLoop]]] = {}
        self._lock = threading.Lock()

    def register(self, token: CallToken, sink: ProgressSink,
                 loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        with self._lock:
            self._entries[token] = (sink, loop)

    def unregister(self, token: CallToken) -> bool:
        with self._lock:
            return self._entries.pop(token, None) is not None

    def dispatch(self, token: CallToken, fraction: float) -> None:
        """Deliver `fraction` to the sink registered for `token`, on that call's loop."""
        with self._lock:
            entry = self._entries.get(token)
        if entry is None:
            return
        sink, loop = entry
        if loop is None or _running_loop() is loop:
            sink(fraction)
        else:
            loop.call_soon_threadsafe(sink, fraction)

    def __contains__(self, token: object) -> bool:
        with self._lock:
            return token in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


def _running_loop() -> Optional[asyncio.AbstractEventLoop]:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


class Call(Generic[T]):
    """Handle to an in-flight call. Await it for the decoded value."""

    def __init__(self, task: "asyncio.Task[T]", token: CallToken, abort: Callable[[CallToken], None]):
        self._task = task
        self.token = token
        self._abort = abort

    def cancel(self) -> bool:
        """Abort the transport call and drop its progress correlation right away."""
        if self._task.done():
            return False
        self._abort(self.token)
        return self._task.cancel()

    def done(self) -> bool:
        return self._task.done()

    def cancelled(self) -> bool:
        return self._task.cancelled()

    def result(self) -> T:
        return self._task.result()

    def exception(self) -> Optional[BaseException]:
        return self._task.exception()

    def add_done_callback(self, callback: Callable[["asyncio.Task[T]"], Any]) -> None:
        self._task.add_done_callback(callback)

    def __await__(self):
        return self._task.__await__()


SendTarget = Union[Request, RequestRepresentable, HTTPRequest]


class APIClient:
    """Sends requests through the middleware chain and decodes their responses."""

    def __init__(self, transport: Optional[Transport] = None,
                 reachability: Optional[Reachability] = None,
                 configuration: Optional[Configuration] = None,
                 middleware: Optional[Iterable[Middleware]] = None):
        self.configuration = configuration or Configuration()
        self.transport = transport or HTTPClientTransport(timeout=self.configuration.timeout)
        self.reachability = reachability or StaticReachability()
        self.middleware = Middlewares(middleware)
        self.logger = self.configuration.logger

        self._encoder = self.configuration.encoder()
        self._decoder = self.configuration.decoder()
        self._progress = ProgressTable()
        self._aborted: Set[CallToken] = set()
        self._lock = threading.Lock()
        self._closed = False

        self._unsubscribe = self.transport.progress.subscribe(self._progress.dispatch)
        self.reachability.start()

    @property
    def progress_table(self) -> ProgressTable:
        return self._progress

    def send(self, request: SendTarget, progress: Optional[ProgressSink] = None) -> Call:
        """Dispatch `request` and return its Call handle immediately.

        Must be called from a running event loop. Sending a bare HTTPRequest
        resolves to the undecoded HTTPResponse.
        """
        if self._closed:
            raise RuntimeError("Client is closed")

        request = self._as_request(request)
        token = CallToken()
        task = asyncio.ensure_future(self._dispatch(request, token, progress))
        task.add_done_callback(lambda _: self._forget(token))
        return Call(task, token, self._abort)

    async def fetch(self, request: SendTarget, progress: Optional[ProgressSink] = None) -> Any:
        """Send `request` and await its decoded value."""
        return await self.send(request, progress)

    def _as_request(self, request: SendTarget) -> Request:
        if isinstance(request, Request):
            return request
        if isinstance(request, HTTPRequest):
            return Request(request, decode_handler=lambda response: response)
        if isinstance(request, RequestRepresentable):
            return request.request()
        raise WrongUsage(f"Cannot send object of type {type(request).__name__}")

    def _prepare(self, request: HTTPRequest) -> HTTPRequest:
        """Apply configured defaults the request does not set itself.

        JSON bodies built without an explicit encoder get the configured one.
        """
        config = self.configuration
        if request.timeout is None:
            request = request.with_timeout(config.timeout)
        missing = [(name, value) for name, value in config.default_headers.items()
                   if name not in request.headers]
        if config.user_agent and "User-Agent" not in request.headers:
            missing.append(("User-Agent", config.user_agent))
        if missing:
            request = request.add_headers(missing)
        if isinstance(request.body, JSONBody) and not request.body.has_encoder:
            request = replace(request, body=request.body.with_encoder(self._encoder))
        return request

    async def _dispatch(self, request: Request, token: CallToken, progress: Optional[ProgressSink]) -> Any:
        http_request = request.http_request
        if not self.reachability.is_connected:
            self.logger.warning(f"No internet connection, not sending {http_request.method} {http_request.string}")
            raise NoInternetConnection()

        async def terminal(forwarded: HTTPRequest) -> HTTPResponse:
            return await self.transport.send(forwarded, token)

        responder = make_responder(self.middleware.resolve(), BasicResponder(terminal))

        if progress is not None:
            self._progress.register(token, progress, asyncio.get_running_loop())
        self.logger.debug(f"Dispatching call {token}: {http_request.method} {http_request.string}")
        try:
            response = await responder.respond(self._prepare(http_request))
        except asyncio.CancelledError:
            self.logger.debug(f"Call {token} cancelled")
            self._abort(token)
            raise
        finally:
            self._progress.unregister(token)

        try:
            return request.decode(response, self._decoder)
        except Exception as error:
            self.logger.debug(f"Call {token} failed to decode: {error}")
            raise

    def _abort(self, token: CallToken) -> None:
        """Signal the transport and drop progress correlation, once per call."""
        with self._lock:
            if token in self._aborted:
                return
            self._aborted.add(token)
        self._progress.unregister(token)
        self.transport.cancel(token)

    def _forget(self, token: CallToken) -> None:
        self._progress.unregister(token)
        with self._lock:
            self._aborted.discard(token)
        self.transport.release(token)

    def close(self) -> None:
        """Stop listening to the transport and stop the reachability monitor."""
        if self._closed:
            return
        self._closed = True
        self._unsubscribe()
        self.reachability.stop()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        self.close()
