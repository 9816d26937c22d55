from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.responses import Response

from storefront.errors import ContinuationMisuseError, PipelineCancelledError, StageFailure
from storefront.pipeline.diagnostics import render_failure
from storefront.routes.gateway import to_response


def register_exception_handlers(app: FastAPI, debug: bool) -> None:
    @app.exception_handler(StageFailure)
    async def stage_failure(request: Request, exc: StageFailure) -> Response:
        return to_response(render_failure(exc, debug=debug))

    @app.exception_handler(PipelineCancelledError)
    async def pipeline_cancelled(request: Request, exc: PipelineCancelledError) -> JSONResponse:
        return JSONResponse(
            status_code=503,
            content={"detail": "Request cancelled", "stage": exc.stage},
        )

    @app.exception_handler(ContinuationMisuseError)
    async def continuation_misuse(
        request: Request, exc: ContinuationMisuseError
    ) -> JSONResponse:
        content = {"detail": str(exc), "stage": exc.stage} if debug else {
            "detail": "Internal Server Error"
        }
        return JSONResponse(status_code=500, content=content)
