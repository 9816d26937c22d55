import asyncio

import pytest
from structlog.testing import capture_logs

from storefront.errors import ContinuationMisuseError, PipelineCancelledError, StageFailure
from storefront.pipeline.builder import build_pipeline
from storefront.pipeline.context import RequestDescriptor, ResponseDescriptor
from storefront.pipeline.diagnostics import (
    error_page_stage,
    render_failure,
    request_logging_stage,
)
from storefront.pipeline.executor import Stage
from storefront.pipeline.request_id import RequestIdCounter, request_id_stage


def _failure() -> StageFailure:
    try:
        raise RuntimeError("database unreachable")
    except RuntimeError as e:
        return StageFailure("endpoint", e)


async def _explode(ctx):
    raise RuntimeError("database unreachable")


async def _ok(ctx):
    return ResponseDescriptor(status_code=201, body={"created": True})


def test_development_failure_page_has_details():
    response = render_failure(_failure(), debug=True, request_id=7)

    assert response.status_code == 500
    assert response.body["stage"] == "endpoint"
    assert response.body["exception"] == "RuntimeError"
    assert response.body["message"] == "database unreachable"
    assert any("RuntimeError" in line for line in response.body["traceback"])
    assert response.body["request_id"] == 7


def test_production_failure_page_is_opaque():
    response = render_failure(_failure(), debug=False, request_id=7)

    assert response.status_code == 500
    assert response.body == {"detail": "Internal Server Error", "request_id": 7}


async def test_error_page_stage_reports_request_id():
    pipeline = build_pipeline(
        [Stage("request_id", request_id_stage(RequestIdCounter()))],
        _explode,
        error_handler=error_page_stage(debug=False),
    )

    response = await pipeline.handle(RequestDescriptor(method="GET", path="/"))

    assert response.status_code == 500
    assert response.body == {"detail": "Internal Server Error", "request_id": 1}
    assert response.headers["X-Request-ID"] == "1"


async def test_request_logging_stage_logs_start_and_finish():
    pipeline = build_pipeline([Stage("request_logging", request_logging_stage())], _ok)

    with capture_logs() as logs:
        response = await pipeline.handle(RequestDescriptor(method="POST", path="/products"))

    assert response.status_code == 201
    events = [entry["event"] for entry in logs]
    assert events[0] == "request_started"
    assert "request_finished" in events
    finished = next(entry for entry in logs if entry["event"] == "request_finished")
    assert finished["status"] == 201
    assert finished["path"] == "/products"


async def test_request_logging_stage_logs_and_reraises_failures():
    pipeline = build_pipeline([Stage("request_logging", request_logging_stage())], _explode)

    with capture_logs() as logs:
        with pytest.raises(StageFailure):
            await pipeline.handle(RequestDescriptor(method="GET", path="/"))

    failed = [entry for entry in logs if entry["event"] == "request_failed"]
    assert len(failed) == 1
    assert failed[0]["stage"] == "endpoint"


async def test_request_logging_stage_logs_cancelled_requests():
    async def cancel(ctx, call_next):
        ctx.cancel_event.set()
        return await call_next()

    pipeline = build_pipeline(
        [Stage("request_logging", request_logging_stage()), Stage("cancel", cancel)], _ok
    )

    with capture_logs() as logs:
        with pytest.raises(PipelineCancelledError):
            await pipeline.handle(RequestDescriptor(method="GET", path="/"), asyncio.Event())

    failed = [entry for entry in logs if entry["event"] == "request_failed"]
    assert len(failed) == 1
    assert failed[0]["stage"] == "endpoint"
    assert failed[0]["error_type"] == "PipelineCancelledError"


async def test_request_logging_stage_logs_continuation_misuse():
    async def twice(ctx, call_next):
        await call_next()
        return await call_next()

    pipeline = build_pipeline(
        [Stage("request_logging", request_logging_stage()), Stage("twice", twice)], _ok
    )

    with capture_logs() as logs:
        with pytest.raises(ContinuationMisuseError):
            await pipeline.handle(RequestDescriptor(method="GET", path="/"))

    failed = [entry for entry in logs if entry["event"] == "request_failed"]
    assert len(failed) == 1
    assert failed[0]["stage"] == "twice"
