import asyncio
import threading
from dataclasses import dataclass

import pytest

from APIConnect import (
    APIClient,
    AuthenticationMiddleware,
    CallToken,
    Configuration,
    FallbackDecodeError,
    FunctionMiddleware,
    HTTPClientTransport,
    HTTPRequest,
    HTTPResponse,
    JSONEncoder,
    KeyEncodingStrategy,
    NoInternetConnection,
    ProgressTable,
    Request,
    RequestRepresentable,
    ResponseDecodable,
    StaticReachability,
    TransportConnectionError,
    WrongUsage,
)
from conftest import FakeTransport, json_response


@dataclass
class Widget:
    id: int
    name: str


@dataclass
class ApiError:
    message: str


WIDGET = {"id": 1, "name": "sprocket"}

HTTP_REQUEST = HTTPRequest.from_url("https://api.example.com/widgets/1")


def test_fetch_decodes_response(client, transport):
    transport.handler = lambda request: json_response(request, WIDGET)

    async def main():
        return await client.fetch(Request.raw(HTTP_REQUEST, Widget))

    assert asyncio.run(main()) == Widget(1, "sprocket")
    assert transport.sent[0][0] == HTTP_REQUEST


def test_offline_fails_before_transport(client, transport, reachability):
    reachability.set_connected(False)

    async def main():
        return await client.fetch(Request.raw(HTTP_REQUEST, Widget))

    with pytest.raises(NoInternetConnection):
        asyncio.run(main())
    assert transport.sent == []


def test_progress_is_delivered_to_its_call(client, transport):
    transport.progress_steps = [0.25, 1.0]
    received = []

    async def main():
        await client.fetch(Request.raw(HTTP_REQUEST, bytes), progress=received.append)

    asyncio.run(main())

    assert received == [0.25, 1.0]
    assert len(client.progress_table) == 0


def test_equal_requests_get_separate_progress(client, transport):
    transport.progress_steps = [1.0]
    first, second = [], []

    async def main():
        one = client.send(Request.raw(HTTP_REQUEST, bytes), progress=first.append)
        two = client.send(Request.raw(HTTP_REQUEST.with_timeout(None), bytes), progress=second.append)
        assert one.token != two.token
        await one
        await two

    asyncio.run(main())

    assert first == [1.0]
    assert second == [1.0]
    assert transport.sent[0][0] == transport.sent[1][0]


def test_cancel_aborts_transport_and_drops_progress(client, transport):
    async def main():
        transport.gate = asyncio.Event()
        call = client.send(Request.raw(HTTP_REQUEST, Widget), progress=lambda fraction: None)
        await asyncio.sleep(0)
        assert call.token in client.progress_table

        assert call.cancel()
        assert call.token not in client.progress_table
        assert transport.cancelled == [call.token]

        with pytest.raises(asyncio.CancelledError):
            await call
        assert call.cancelled()
        assert not call.cancel()

    asyncio.run(main())
    assert len(transport.cancelled) == 1


def test_outer_timeout_aborts_once(client, transport):
    async def main():
        transport.gate = asyncio.Event()
        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(client.fetch(Request.raw(HTTP_REQUEST, Widget), progress=lambda fraction: None), 0.01)
        await asyncio.sleep(0)

    asyncio.run(main())

    token = transport.sent[0][1]
    assert transport.cancelled == [token]
    assert len(client.progress_table) == 0


def test_every_call_is_released(client, transport):
    async def main():
        await client.fetch(HTTP_REQUEST)
        transport.gate = asyncio.Event()
        call = client.send(HTTP_REQUEST)
        await asyncio.sleep(0)
        call.cancel()
        with pytest.raises(asyncio.CancelledError):
            await call
        return call.token

    cancelled = asyncio.run(main())

    assert transport.released == [transport.sent[0][1], cancelled]


def test_cancel_in_middleware_leaves_no_transport_state(reachability):
    transport = HTTPClientTransport()
    entered = []

    async def stall(request, next):
        entered.append(request)
        await asyncio.Event().wait()
        return await next.respond(request)

    client = APIClient(transport, reachability, middleware=[FunctionMiddleware(stall)])

    async def main():
        call = client.send(HTTP_REQUEST)
        while not entered:
            await asyncio.sleep(0)
        call.cancel()
        with pytest.raises(asyncio.CancelledError):
            await call

    asyncio.run(main())
    client.close()

    assert transport.in_flight == 0
    assert transport._cancelled == set()


def test_transport_errors_pass_through(client, transport):
    transport.handler = lambda request: TransportConnectionError("refused")

    async def main():
        await client.fetch(Request.raw(HTTP_REQUEST, Widget), progress=lambda fraction: None)

    with pytest.raises(TransportConnectionError):
        asyncio.run(main())
    assert len(client.progress_table) == 0


def test_fallback_errors_surface(client, transport):
    transport.handler = lambda request: json_response(request, {"message": "nope"}, status_code=404)

    async def main():
        await client.fetch(Request.raw(HTTP_REQUEST, Widget, fallback_type=ApiError))

    with pytest.raises(FallbackDecodeError) as info:
        asyncio.run(main())
    assert info.value.fallback == ApiError("nope")


def test_bare_http_request_resolves_to_response(client, transport):
    async def main():
        return await client.fetch(HTTP_REQUEST)

    response = asyncio.run(main())

    assert isinstance(response, HTTPResponse)
    assert response.status_code == 200


def test_representable_requests(client, transport):
    class GetWidget(RequestRepresentable, ResponseDecodable):
        raw_value = Widget

        @property
        def http_request(self):
            return HTTP_REQUEST

    transport.handler = lambda request: json_response(request, WIDGET)

    async def main():
        return await client.fetch(GetWidget())

    assert asyncio.run(main()) == Widget(1, "sprocket")


def test_unsupported_send_target(client):
    async def main():
        client.send("https://example.com")

    with pytest.raises(WrongUsage):
        asyncio.run(main())


def test_middleware_and_configured_defaults_apply():
    transport = FakeTransport()
    configuration = Configuration(timeout=3, user_agent="agent/1", default_headers={"Accept": "application/json"})
    client = APIClient(transport, StaticReachability(), configuration, middleware=[AuthenticationMiddleware("t")])

    async def main():
        await client.fetch(HTTP_REQUEST.with_header("accept", "text/plain"))

    asyncio.run(main())
    client.close()

    sent = transport.sent[0][0]
    assert sent.timeout == 3
    assert sent.headers.values("Accept") == ["text/plain"]
    assert sent.headers.values("User-Agent") == ["agent/1"]
    assert sent.headers.values("Authorization") == ["Bearer t"]


def test_close_detaches_from_transport_and_reachability(transport, reachability):
    client = APIClient(transport, reachability)
    assert reachability.is_running
    assert len(transport.progress) == 1

    client.close()
    client.close()

    assert not reachability.is_running
    assert len(transport.progress) == 0

    async def main():
        client.send(HTTP_REQUEST)

    with pytest.raises(RuntimeError):
        asyncio.run(main())


def test_async_context_manager(transport, reachability):
    async def main():
        async with APIClient(transport, reachability) as client:
            await client.fetch(HTTP_REQUEST)
        return client

    client = asyncio.run(main())
    assert not reachability.is_running
    with pytest.raises(RuntimeError):
        client.send(HTTP_REQUEST)


def test_progress_table_ignores_unknown_tokens():
    table = ProgressTable()
    table.dispatch(CallToken(), 0.5)

    assert len(table) == 0


def test_progress_table_marshals_to_the_call_loop():
    async def main():
        table = ProgressTable()
        received = []
        token = CallToken()
        table.register(token, received.append, asyncio.get_running_loop())

        worker = threading.Thread(target=table.dispatch, args=(token, 0.5))
        worker.start()
        worker.join()
        assert received == []

        await asyncio.sleep(0)
        assert received == [0.5]
        assert table.unregister(token)
        assert not table.unregister(token)

    asyncio.run(main())


def test_json_bodies_use_configured_key_encoding(transport, reachability):
    configuration = Configuration(user_agent=None, key_encoding_strategy=KeyEncodingStrategy.CONVERT_TO_CAMEL_CASE)
    client = APIClient(transport, reachability, configuration)
    implicit = HTTP_REQUEST.with_method("POST").with_json({"user_name": "ada"})
    explicit = HTTP_REQUEST.with_method("POST").with_json({"user_name": "ada"}, encoder=JSONEncoder())

    async def main():
        await client.fetch(implicit)
        await client.fetch(explicit)

    asyncio.run(main())
    client.close()

    assert transport.sent[0][0].body.encode() == b'{"userName":"ada"}'
    assert transport.sent[0][0].headers.values("Content-Type") == ["application/json"]
    assert transport.sent[1][0].body.encode() == b'{"user_name":"ada"}'
    assert implicit.body.encode() == b'{"user_name":"ada"}'
