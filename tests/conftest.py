import asyncio
import json
from typing import Any, Callable, List, Optional, Sequence, Tuple

import pytest

from APIConnect import APIClient, Configuration, HTTPRequest, HTTPResponse, StaticReachability
from APIConnect.transport import CallToken, Transport


def json_response(request: HTTPRequest, payload: Any, status_code: int = 200) -> HTTPResponse:
    return HTTPResponse(
        request=request,
        status_code=status_code,
        headers=[("Content-Type", "application/json")],
        body=json.dumps(payload).encode("utf-8"),
    )


class FakeTransport(Transport):
    """In-memory transport: answers with `handler`, records sends, cancellations and releases."""

    def __init__(self, handler: Optional[Callable[[HTTPRequest], Any]] = None):
        super().__init__()
        self.handler = handler or (lambda request: json_response(request, {}))
        self.sent: List[Tuple[HTTPRequest, CallToken]] = []
        self.cancelled: List[CallToken] = []
        self.released: List[CallToken] = []
        self.progress_steps: Sequence[float] = ()
        self.gate: Optional[asyncio.Event] = None

    async def send(self, request: HTTPRequest, token: CallToken) -> HTTPResponse:
        self.sent.append((request, token))
        for fraction in self.progress_steps:
            self.progress.emit(token, fraction)
        if self.gate is not None:
            await self.gate.wait()
        result = self.handler(request)
        if isinstance(result, BaseException):
            raise result
        return result

    def cancel(self, token: CallToken) -> None:
        self.cancelled.append(token)

    def release(self, token: CallToken) -> None:
        self.released.append(token)


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def reachability() -> StaticReachability:
    return StaticReachability(connected=True)


@pytest.fixture
def client(transport, reachability) -> APIClient:
    api_client = APIClient(transport, reachability, Configuration(user_agent=None))
    yield api_client
    api_client.close()
