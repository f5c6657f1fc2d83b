import asyncio
import inspect
import logging
import random
import threading
import time
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Union

from .exceptions import TransportConnectionError, TransportTimeoutError
from .headers import HeaderPairs, HTTPHeaders
from .models import HTTPRequest, HTTPResponse

# Configure logging
logger = logging.getLogger(__name__)


# Responders
class Responder:
    """Turns a request into a response, asynchronously."""

    async def respond(self, request: HTTPRequest) -> HTTPResponse:
        raise NotImplementedError


class BasicResponder(Responder):
    """A closure-based Responder. The closure may be a plain function or a coroutine function."""

    def __init__(self, closure: Callable[[HTTPRequest], Union[HTTPResponse, Awaitable[HTTPResponse]]]):
        self._closure = closure

    async def respond(self, request: HTTPRequest) -> HTTPResponse:
        result = self._closure(request)
        if inspect.isawaitable(result):
            result = await result
        return result


# Middleware System
class Middleware:
    """Intercepts a request on its way to the next responder in the chain.

    A middleware may change the request before forwarding it, change the
    response afterwards, call `next` several times, or never call it and
    answer by itself.
    """

    async def respond(self, request: HTTPRequest, next: Responder) -> HTTPResponse:
        return await next.respond(request)

    def make_responder(self, next: Responder) -> Responder:
        return _MiddlewareResponder(self, next)


class _MiddlewareResponder(Responder):
    def __init__(self, middleware: Middleware, responder: Responder):
        self.middleware = middleware
        self.responder = responder

    async def respond(self, request: HTTPRequest) -> HTTPResponse:
        return await self.middleware.respond(request, self.responder)


class FunctionMiddleware(Middleware):
    """Adapts `async def handler(request, next)` into a Middleware."""

    def __init__(self, handler: Callable[[HTTPRequest, Responder], Awaitable[HTTPResponse]]):
        self.handler = handler

    async def respond(self, request: HTTPRequest, next: Responder) -> HTTPResponse:
        return await self.handler(request, next)


def make_responder(middlewares: Iterable[Middleware], terminal: Responder) -> Responder:
    """Compose `[m1, m2, ..., mn]` around `terminal` as m1(m2(...mn(terminal))).

    The first middleware is the outermost: it sees the request first and the
    response last.
    """
    responder = terminal
    for middleware in reversed(list(middlewares)):
        responder = middleware.make_responder(responder)
    return responder


class Position(Enum):
    BEGINNING = "beginning"  # outermost
    END = "end"  # innermost, closest to the transport


class Middlewares:
    """Ordered registry of middleware used by a client."""

    def __init__(self, middlewares: Optional[Iterable[Middleware]] = None):
        self._storage: List[Middleware] = list(middlewares or [])

    def use(self, middleware: Middleware, position: Position = Position.END) -> None:
        if position is Position.BEGINNING:
            self._storage.insert(0, middleware)
        else:
            self._storage.append(middleware)

    def use_all(self, middlewares: Iterable[Middleware]) -> None:
        self._storage.extend(middlewares)

    def resolve(self) -> List[Middleware]:
        return list(self._storage)

    def __len__(self) -> int:
        return len(self._storage)

    def __iter__(self):
        return iter(self.resolve())


# Stock middleware
class LoggingMiddleware(Middleware):
    """Middleware for logging requests and responses."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)

    async def respond(self, request: HTTPRequest, next: Responder) -> HTTPResponse:
        self.logger.debug(f"Request: {request.method} {request.string}")
        start_time = time.monotonic()
        try:
            response = await next.respond(request)
        except asyncio.CancelledError:
            self.logger.debug(f"Request cancelled: {request.method} {request.string}")
            raise
        except Exception as error:
            self.logger.error(f"Request failed: {request.method} {request.string} - {error}")
            raise
        self.logger.debug(f"Response: {response.status_code} ({time.monotonic() - start_time:.3f}s)")
        return response


class AuthenticationMiddleware(Middleware):
    """Middleware for adding authentication headers."""

    def __init__(self, token: str, auth_type: str = "Bearer"):
        self.token = token
        self.auth_type = auth_type

    async def respond(self, request: HTTPRequest, next: Responder) -> HTTPResponse:
        if "Authorization" not in request.headers:
            request = request.with_header("Authorization", f"{self.auth_type} {self.token}")
        return await next.respond(request)


class UserAgentMiddleware(Middleware):
    """Middleware for adding User-Agent header."""

    def __init__(self, user_agent: str):
        self.user_agent = user_agent

    async def respond(self, request: HTTPRequest, next: Responder) -> HTTPResponse:
        if "User-Agent" not in request.headers:
            request = request.with_header("User-Agent", self.user_agent)
        return await next.respond(request)


class HeadersMiddleware(Middleware):
    """Adds default headers the request does not already carry."""

    def __init__(self, headers: HeaderPairs):
        self.headers = HTTPHeaders(headers)

    async def respond(self, request: HTTPRequest, next: Responder) -> HTTPResponse:
        missing = [(name, value) for name, value in self.headers if name not in request.headers]
        if missing:
            request = request.add_headers(missing)
        return await next.respond(request)


class MetricsMiddleware(Middleware):
    """Middleware for collecting request metrics."""

    def __init__(self):
        self.request_count = 0
        self.error_count = 0
        self.total_response_time = 0.0
        self._lock = threading.Lock()

    async def respond(self, request: HTTPRequest, next: Responder) -> HTTPResponse:
        start_time = time.monotonic()
        try:
            response = await next.respond(request)
        except Exception:
            with self._lock:
                self.error_count += 1
            raise
        with self._lock:
            self.request_count += 1
            self.total_response_time += time.monotonic() - start_time
        return response

    def get_stats(self) -> Dict[str, Any]:
        """Get current metrics."""
        with self._lock:
            return {
                'request_count': self.request_count,
                'error_count': self.error_count,
                'average_response_time': (
                    self.total_response_time / self.request_count
                    if self.request_count > 0 else 0.0
                ),
                'error_rate': (
                    self.error_count / (self.request_count + self.error_count)
                    if (self.request_count + self.error_count) > 0 else 0.0
                )
            }


# Retry Logic
class RetryConfig:
    """Configuration for retry behavior."""

    retryable_status_codes = (408, 429)

    def __init__(self, max_retries: int = 3, base_delay: float = 1.0,
                 backoff_factor: float = 2.0, jitter: bool = True):
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.backoff_factor = backoff_factor
        self.jitter = jitter

    def should_retry(self, attempt: int, error: Exception) -> bool:
        """Determine if a failed request should be retried."""
        if attempt >= self.max_retries:
            return False
        return isinstance(error, (TransportTimeoutError, TransportConnectionError))

    def should_retry_response(self, attempt: int, response: HTTPResponse) -> bool:
        """Determine if a request should be retried given the response it produced."""
        if attempt >= self.max_retries:
            return False
        status_code = response.status_code
        return status_code in self.retryable_status_codes or status_code >= 500

    def get_delay(self, attempt: int, response: Optional[HTTPResponse] = None) -> float:
        """Calculate the delay before retrying."""
        # Use Retry-After header if available
        retry_after = parse_retry_after(response.headers) if response is not None else None
        if retry_after is not None:
            return retry_after

        # Calculate exponential backoff delay
        delay = self.base_delay * (self.backoff_factor ** attempt)

        # Add jitter to prevent thundering herd
        if self.jitter:
            delay = delay * (0.5 + random.random() * 0.5)

        return delay


def parse_retry_after(headers: HTTPHeaders) -> Optional[float]:
    """Parse the Retry-After header when it holds a number of seconds."""
    retry_after = headers.first("Retry-After")
    if retry_after:
        try:
            return float(retry_after)
        except ValueError:
            return None
    return None


class RetryMiddleware(Middleware):
    """Re-sends a request after transport failures or retryable status codes.

    Once retries are exhausted the last response is returned, or the last
    error raised, unchanged.
    """

    def __init__(self, retry_config: Optional[RetryConfig] = None,
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep):
        self.retry_config = retry_config or RetryConfig()
        self._sleep = sleep

    async def respond(self, request: HTTPRequest, next: Responder) -> HTTPResponse:
        attempt = 0
        while True:
            try:
                response = await next.respond(request)
            except Exception as error:
                if not self.retry_config.should_retry(attempt, error):
                    raise
                delay = self.retry_config.get_delay(attempt)
            else:
                if not self.retry_config.should_retry_response(attempt, response):
                    return response
                delay = self.retry_config.get_delay(attempt, response)

            attempt += 1
            logger.debug(f"Retrying request in {delay:.2f}s (attempt {attempt})")
            await self._sleep(delay)
