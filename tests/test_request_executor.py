import json

import httpx
import pytest
from pydantic import BaseModel

from application.dto import UpdateProfileDTO
from domain.common.exceptions import ApiError
from infrastructure.external.api_clients import RequestExecutor, build_http_client
from tests.fakes import BASE_URL, REFRESH, StubCoordinator


class Recorder:
    """MockTransport handler answering from a queue of (status, json) tuples."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        status, payload = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(payload, bytes):
            return httpx.Response(status, content=payload)
        if payload is None:
            return httpx.Response(status)
        return httpx.Response(status, json=payload)


def _executor(handler, refresher=None):
    client = build_http_client(BASE_URL, transport=httpx.MockTransport(handler))
    return RequestExecutor(client=client, refresher=refresher or StubCoordinator())


@pytest.mark.asyncio
async def test_default_headers_and_overrides():
    rec = Recorder((200, {"ok": True}))
    executor = _executor(rec)
    await executor.call("/admin/orders", params={"page": 2}, headers={"X-Trace": "t1"})
    await executor.call("/admin/upload", method="post", headers={"Content-Type": "text/plain"})

    first, second = rec.requests
    assert first.headers["content-type"] == "application/json"
    assert first.headers["accept"] == "application/json"
    assert first.headers["x-trace"] == "t1"
    assert first.url.params["page"] == "2"
    assert second.method == "POST"
    assert second.headers["content-type"] == "text/plain"
    await executor.client.aclose()


@pytest.mark.asyncio
async def test_model_body_is_sent_camel_case():
    rec = Recorder((200, {"ok": True}))
    executor = _executor(rec)
    await executor.put("/me", json_data=UpdateProfileDTO(first_name="Ada"))
    assert json.loads(rec.requests[0].content) == {"firstName": "Ada"}
    await executor.client.aclose()


@pytest.mark.asyncio
async def test_empty_and_non_json_success_bodies():
    executor = _executor(Recorder((204, None)))
    assert await executor.delete("/admin/products/1") is None
    await executor.client.aclose()

    executor = _executor(Recorder((200, b"not json")))
    with pytest.raises(ApiError) as exc_info:
        await executor.get("/admin/products")
    assert exc_info.value.code == "INVALID_RESPONSE"
    await executor.client.aclose()


@pytest.mark.asyncio
async def test_response_model_validation():
    class Page(BaseModel):
        total: int

    executor = _executor(Recorder((200, {"total": 3}), (200, {"total": "many"})))
    page = await executor.get("/admin/orders", response_model=Page)
    assert page.total == 3
    with pytest.raises(ApiError) as exc_info:
        await executor.get("/admin/orders", response_model=Page)
    assert exc_info.value.code == "INVALID_RESPONSE"
    await executor.client.aclose()


@pytest.mark.asyncio
async def test_non_auth_errors_are_not_retried():
    rec = Recorder((400, {"error": "VALIDATION_ERROR", "message": "bad", "details": {"price": "negative"}}))
    refresher = StubCoordinator()
    executor = _executor(rec, refresher)
    with pytest.raises(ApiError) as exc_info:
        await executor.post("/admin/products", json_data={"price": -1})
    assert exc_info.value.field_errors == {"price": "negative"}
    assert len(rec.requests) == 1
    assert refresher.calls == 0
    await executor.client.aclose()


@pytest.mark.asyncio
async def test_transport_error_is_not_retried():
    calls = []

    def handler(request):
        calls.append(request)
        raise httpx.ConnectError("connection refused", request=request)

    refresher = StubCoordinator()
    executor = _executor(handler, refresher)
    with pytest.raises(ApiError) as exc_info:
        await executor.get("/admin/orders")
    assert exc_info.value.is_transport_error
    assert exc_info.value.http_status == 0
    assert len(calls) == 1
    assert refresher.calls == 0
    await executor.client.aclose()


@pytest.mark.asyncio
async def test_401_refresh_then_single_retry():
    rec = Recorder((401, {"error": "UNAUTHORIZED", "message": "expired"}), (200, {"ok": True}))
    refresher = StubCoordinator(result=True)
    executor = _executor(rec, refresher)
    assert await executor.get("/admin/orders") == {"ok": True}
    assert len(rec.requests) == 2
    assert refresher.calls == 1
    await executor.client.aclose()


@pytest.mark.asyncio
async def test_still_401_after_refresh_is_terminal():
    rec = Recorder((401, {"error": "UNAUTHORIZED", "message": "expired"}))
    refresher = StubCoordinator(result=True)
    executor = _executor(rec, refresher)
    seen = []

    async def on_unauthorized(err, marker):
        seen.append(err)

    executor.register_auth_error_handler(on_unauthorized)
    with pytest.raises(ApiError) as exc_info:
        await executor.get("/admin/orders")
    assert exc_info.value.is_auth_error
    assert len(rec.requests) == 2
    assert refresher.calls == 1
    assert seen == [exc_info.value]
    await executor.client.aclose()


@pytest.mark.asyncio
async def test_failed_refresh_raises_the_401_error():
    rec = Recorder((401, {"error": "UNAUTHORIZED", "message": "expired", "requestId": "r-9"}))
    refresher = StubCoordinator(result=False)
    executor = _executor(rec, refresher)
    seen = []

    async def on_unauthorized(err, marker):
        seen.append(err.request_id)

    executor.register_auth_error_handler(on_unauthorized)
    with pytest.raises(ApiError) as exc_info:
        await executor.get("/admin/orders")
    assert exc_info.value.request_id == "r-9"
    assert len(rec.requests) == 1
    assert seen == ["r-9"]
    await executor.client.aclose()


@pytest.mark.asyncio
async def test_auth_recovery_disabled_skips_refresh():
    rec = Recorder((401, {"error": "INVALID_CREDENTIALS", "message": "Invalid email or password"}))
    refresher = StubCoordinator()
    executor = _executor(rec, refresher)
    seen = []

    async def on_unauthorized(err, marker):
        seen.append(err)

    executor.register_auth_error_handler(on_unauthorized)
    with pytest.raises(ApiError) as exc_info:
        await executor.post("/login", json_data={}, auth_recovery=False)
    assert exc_info.value.message == "Invalid email or password"
    assert refresher.calls == 0
    assert seen == []
    await executor.client.aclose()


@pytest.mark.asyncio
async def test_owned_client_is_closed():
    executor = RequestExecutor(base_url=BASE_URL)
    async with executor:
        pass
    assert executor.client.is_closed


@pytest.mark.asyncio
async def test_default_refresher_posts_refresh_endpoint():
    rec = Recorder(
        (401, {"error": "UNAUTHORIZED", "message": "expired"}),
        (200, None),
        (200, {"ok": True}),
    )
    client = build_http_client(BASE_URL, transport=httpx.MockTransport(rec))
    executor = RequestExecutor(client=client, refresh_endpoint=REFRESH)
    assert await executor.get("/admin/orders") == {"ok": True}
    assert [r.url.path for r in rec.requests] == ["/admin/orders", REFRESH, "/admin/orders"]
    assert executor.refresher.attempts == 1
    assert not executor.refresher.in_flight
    await client.aclose()


@pytest.mark.asyncio
async def test_session_marker_is_taken_when_request_starts():
    rec = Recorder((401, {"error": "UNAUTHORIZED", "message": "expired"}))
    state = {"epoch": 1}

    class EpochBumpingRefresher(StubCoordinator):
        async def refresh(self) -> bool:
            state["epoch"] += 1
            return await super().refresh()

    executor = _executor(rec, EpochBumpingRefresher(result=False))
    seen = []

    async def on_unauthorized(err, marker):
        seen.append(marker)

    executor.register_auth_error_handler(on_unauthorized, session_marker=lambda: state["epoch"])
    with pytest.raises(ApiError):
        await executor.get("/admin/orders")
    assert seen == [1]
    assert state["epoch"] == 2
    await executor.client.aclose()


@pytest.mark.asyncio
async def test_marker_is_none_without_provider():
    rec = Recorder((401, {"error": "UNAUTHORIZED", "message": "expired"}))
    executor = _executor(rec, StubCoordinator(result=False))
    seen = []

    async def on_unauthorized(err, marker):
        seen.append(marker)

    executor.register_auth_error_handler(on_unauthorized)
    with pytest.raises(ApiError):
        await executor.get("/admin/orders")
    assert seen == [None]
    await executor.client.aclose()
