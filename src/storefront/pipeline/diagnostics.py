import time
import traceback

import structlog

from storefront.errors import ContinuationMisuseError, PipelineCancelledError, StageFailure
from storefront.pipeline.context import RequestContext, ResponseDescriptor
from storefront.pipeline.executor import CallNext, ErrorHandler, StageHandler

log = structlog.get_logger()


def render_failure(
    failure: StageFailure,
    *,
    debug: bool,
    request_id: int | None = None,
) -> ResponseDescriptor:
    """Build the 500 response for an unhandled stage failure.

    With ``debug`` set the body carries the failing stage, the exception and
    its traceback; otherwise it is opaque.
    """
    if not debug:
        return ResponseDescriptor(
            status_code=500,
            body={"detail": "Internal Server Error", "request_id": request_id},
        )

    error = failure.error
    return ResponseDescriptor(
        status_code=500,
        body={
            "detail": str(failure),
            "stage": failure.stage,
            "exception": type(error).__name__,
            "message": str(error),
            "traceback": traceback.format_exception(type(error), error, error.__traceback__),
            "request_id": request_id,
        },
    )


def error_page_stage(debug: bool) -> ErrorHandler:
    async def error_page(ctx: RequestContext, failure: StageFailure) -> ResponseDescriptor:
        return render_failure(failure, debug=debug, request_id=ctx.request_id)

    return error_page


def request_logging_stage() -> StageHandler:
    async def log_request(ctx: RequestContext, call_next: CallNext) -> ResponseDescriptor:
        request = ctx.request
        log.info("request_started", method=request.method, path=request.path)
        start = time.monotonic()
        try:
            response = await call_next()
        except (StageFailure, PipelineCancelledError, ContinuationMisuseError) as e:
            log.error(
                "request_failed",
                method=request.method,
                path=request.path,
                stage=e.stage,
                error_type=type(e).__name__,
                duration_ms=(time.monotonic() - start) * 1000,
                request_id=ctx.request_id,
            )
            raise
        log.info(
            "request_finished",
            method=request.method,
            path=request.path,
            status=response.status_code,
            duration_ms=(time.monotonic() - start) * 1000,
            request_id=ctx.request_id,
            culture=ctx.culture,
        )
        return response

    return log_request
