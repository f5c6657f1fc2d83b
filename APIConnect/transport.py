import asyncio
import http.client
import logging
import socket
import ssl
import threading
import time
import uuid
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Set

from .exceptions import MissingURL, NoResponse, TransportConnectionError, TransportTimeoutError
from .headers import HTTPHeaders
from .models import HasBody, HTTPRequest, HTTPResponse

logger = logging.getLogger(__name__)

ProgressListener = Callable[["CallToken", float], None]


@dataclass(frozen=True)
class CallToken:
    """Identifies one dispatched call, from send until completion or cancellation."""
    value: str = field(default_factory=lambda: uuid.uuid4().hex)

    def __str__(self) -> str:
        return self.value


class ProgressEvents:
    """Thread-safe feed of `(token, fraction)` progress events published by a transport."""

    def __init__(self):
        self._listeners: List[ProgressListener] = []
        self._lock = threading.Lock()

    def subscribe(self, listener: ProgressListener) -> Callable[[], None]:
        """Register `listener`; returns a function that unsubscribes it."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def emit(self, token: "CallToken", fraction: float) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            listener(token, fraction)

    def __len__(self) -> int:
        with self._lock:
            return len(self._listeners)


class Transport:
    """Sends requests over the network.

    Implementations publish progress for a call on `progress`, keyed by the
    call's token, and abort the call when `cancel` is invoked with it. The
    client calls `release` once a call has finished, however it finished, so
    per-call state can be dropped.
    """

    def __init__(self):
        self.progress = ProgressEvents()

    async def send(self, request: HTTPRequest, token: CallToken) -> HTTPResponse:
        raise NotImplementedError

    def cancel(self, token: CallToken) -> None:
        raise NotImplementedError

    def release(self, token: CallToken) -> None:
        pass


class HTTPClientTransport(Transport):
    """Transport backed by the standard library's http.client.

    Each call opens its own connection on the default executor; upload
    progress is published per chunk written. A call cancelled before its
    executor job starts never opens a connection.
    """

    def __init__(self, timeout: float = 60.0, chunk_size: int = 8192,
                 ssl_context: Optional[ssl.SSLContext] = None):
        super().__init__()
        self.timeout = timeout
        self.chunk_size = chunk_size
        self.ssl_context = ssl_context
        self._connections: Dict[CallToken, http.client.HTTPConnection] = {}
        self._pending: Set[CallToken] = set()
        self._cancelled: Set[CallToken] = set()
        self._lock = threading.Lock()

    async def send(self, request: HTTPRequest, token: CallToken) -> HTTPResponse:
        loop = asyncio.get_running_loop()
        with self._lock:
            self._pending.add(token)
        return await loop.run_in_executor(None, self._sync_request, request, token)

    def cancel(self, token: CallToken) -> None:
        with self._lock:
            if token not in self._pending:
                return
            self._cancelled.add(token)
            connection = self._connections.pop(token, None)
        if connection is not None:
            logger.debug(f"Closing connection for cancelled call {token}")
            connection.close()

    def release(self, token: CallToken) -> None:
        with self._lock:
            self._pending.discard(token)
            self._cancelled.discard(token)

    @property
    def in_flight(self) -> int:
        """Calls submitted to the executor and not yet finished or released."""
        with self._lock:
            return len(self._pending)

    def _create_connection(self, request: HTTPRequest) -> http.client.HTTPConnection:
        """Create a new connection for the request's URL."""
        uri = request.uri
        timeout = request.timeout if request.timeout is not None else self.timeout
        if uri.scheme == 'https':
            return http.client.HTTPSConnection(
                uri.host,
                uri.port,
                timeout=timeout,
                context=self.ssl_context or ssl.create_default_context()
            )
        if uri.scheme == 'http':
            return http.client.HTTPConnection(uri.host, uri.port, timeout=timeout)
        raise MissingURL(f"Unsupported URL: {request.string}")

    def _sync_request(self, request: HTTPRequest, token: CallToken) -> HTTPResponse:
        """Execute a blocking HTTP request."""
        try:
            return self._perform(request, token)
        finally:
            with self._lock:
                self._connections.pop(token, None)
                self._pending.discard(token)
                self._cancelled.discard(token)

    def _perform(self, request: HTTPRequest, token: CallToken) -> HTTPResponse:
        if not request.uri.is_absolute:
            raise MissingURL(f"Missing URL: {request.string!r} is not absolute")

        path = request.uri.path or '/'
        if request.uri.query:
            path += '?' + request.uri.query

        body = b"" if request.body.is_empty else request.body.encode()

        conn = self._create_connection(request)
        with self._lock:
            live = token in self._pending and token not in self._cancelled
            if live:
                self._connections[token] = conn
        if not live:
            conn.close()
            raise NoResponse("Call was cancelled before it was sent.")

        start_time = time.monotonic()
        try:
            conn.connect()
            conn.putrequest(str(request.method), path)

            for header_name, header_value in request.headers:
                conn.putheader(header_name, header_value)

            if body or request.method.has_request_body is HasBody.YES:
                conn.putheader('Content-Length', str(len(body)))
            conn.endheaders()
            if body:
                self._send_body(conn, body, token)

            response = conn.getresponse()
            data = response.read()

            return HTTPResponse(
                request=request,
                status_code=response.status,
                headers=HTTPHeaders(response.getheaders()),
                body=data,
                elapsed=time.monotonic() - start_time
            )

        except socket.timeout:
            raise TransportTimeoutError(f"Request timed out after {conn.timeout} seconds")
        except http.client.HTTPException as e:
            raise NoResponse(f"No response: {e}")
        except OSError as e:
            raise TransportConnectionError(f"Connection error: {e}")
        finally:
            conn.close()

    def _send_body(self, conn: http.client.HTTPConnection, body: bytes, token: CallToken) -> None:
        total = len(body)
        sent = 0
        while sent < total:
            chunk = body[sent:sent + self.chunk_size]
            conn.send(chunk)
            sent += len(chunk)
            self.progress.emit(token, sent / total)
