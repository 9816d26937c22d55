from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from storefront.errors import PipelineCancelledError
from storefront.middleware.errors import register_exception_handlers
from storefront.pipeline.builder import build_pipeline
from storefront.pipeline.context import ResponseDescriptor
from storefront.pipeline.executor import Stage
from storefront.routes.gateway import router as gateway_router
from storefront.routes.gateway import to_response


async def _explode(ctx):
    raise RuntimeError("kaboom")


async def _twice(ctx, call_next):
    await call_next()
    return await call_next()


async def _cancelled(ctx, call_next):
    raise PipelineCancelledError("next")


async def _echo(ctx):
    return ResponseDescriptor(
        body={
            "method": ctx.request.method,
            "path": ctx.request.path,
            "query": ctx.request.query,
            "body": ctx.request.body.decode(),
            "agent": ctx.request.headers.get("x-agent"),
        }
    )


def _app(pipeline, debug: bool) -> FastAPI:
    app = FastAPI()
    app.state.pipeline = pipeline
    register_exception_handlers(app, debug=debug)
    app.include_router(gateway_router)
    return app


async def _get(app: FastAPI, path: str = "/"):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        return await ac.get(path)


async def test_gateway_passes_request_details_through():
    app = _app(build_pipeline([], _echo), debug=False)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        resp = await ac.post(
            "/a/b", params={"q": "1"}, content=b"payload", headers={"X-Agent": "tests"}
        )

    assert resp.json() == {
        "method": "POST",
        "path": "/a/b",
        "query": {"q": "1"},
        "body": "payload",
        "agent": "tests",
    }


async def test_unhandled_stage_failure_is_opaque_in_production():
    resp = await _get(_app(build_pipeline([], _explode), debug=False))

    assert resp.status_code == 500
    assert resp.json() == {"detail": "Internal Server Error", "request_id": None}


async def test_unhandled_stage_failure_has_details_in_development():
    resp = await _get(_app(build_pipeline([], _explode), debug=True))

    assert resp.status_code == 500
    assert resp.json()["message"] == "kaboom"


async def test_continuation_misuse_becomes_server_error():
    pipeline = build_pipeline([Stage("twice", _twice)], _echo)

    dev = await _get(_app(pipeline, debug=True))
    prod = await _get(_app(pipeline, debug=False))

    assert dev.status_code == 500
    assert dev.json()["stage"] == "twice"
    assert prod.json() == {"detail": "Internal Server Error"}


async def test_cancelled_request_is_unavailable():
    resp = await _get(_app(build_pipeline([Stage("cancel", _cancelled)], _echo), debug=False))

    assert resp.status_code == 503


def test_to_response_shapes():
    empty = to_response(ResponseDescriptor(status_code=204))
    text = to_response(ResponseDescriptor(body="hello"))
    raw = to_response(ResponseDescriptor(body=b"\x00\x01"))
    data = to_response(ResponseDescriptor(status_code=201, body={"a": 1}, headers={"X-A": "b"}))

    assert empty.status_code == 204 and empty.body == b""
    assert text.body == b"hello"
    assert text.media_type.startswith("text/plain")
    assert raw.body == b"\x00\x01"
    assert data.status_code == 201
    assert data.body == b'{"a":1}'
    assert data.headers["x-a"] == "b"
