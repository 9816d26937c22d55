import asyncio
import dataclasses
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

import structlog

from storefront.errors import ContinuationMisuseError, PipelineCancelledError, StageFailure
from storefront.pipeline.context import (
    RequestContext,
    RequestDescriptor,
    ResponseDescriptor,
    StageEvent,
)

log = structlog.get_logger()

TERMINAL_STAGE_NAME = "endpoint"

CallNext = Callable[[], Awaitable[ResponseDescriptor]]
StageHandler = Callable[[RequestContext, CallNext], Awaitable[ResponseDescriptor]]
TerminalHandler = Callable[[RequestContext], Awaitable[ResponseDescriptor]]
ErrorHandler = Callable[[RequestContext, StageFailure], Awaitable[ResponseDescriptor]]

# Raised by the pipeline itself; these pass through stages unwrapped.
_CONTROL_ERRORS = (StageFailure, ContinuationMisuseError, PipelineCancelledError)


@dataclass(frozen=True)
class Stage:
    name: str
    handler: StageHandler


class Continuation:
    """The rest of the pipeline from ``index`` onwards. May be awaited once."""

    __slots__ = ("_pipeline", "_index", "_ctx", "_owner", "invoked")

    def __init__(self, pipeline: "Pipeline", index: int, ctx: RequestContext, owner: str) -> None:
        self._pipeline = pipeline
        self._index = index
        self._ctx = ctx
        self._owner = owner
        self.invoked = False

    async def __call__(self) -> ResponseDescriptor:
        if self.invoked:
            raise ContinuationMisuseError(self._owner)
        self.invoked = True
        return await self._pipeline._invoke(self._index, self._ctx)


class Pipeline:
    """Ordered stages in front of a terminal handler.

    Stage ``i`` receives a continuation bound to ``i + 1``; the continuation
    past the last stage calls the terminal handler. The stage tuple is fixed
    when the pipeline is built and shared by every request.
    """

    def __init__(
        self,
        stages: tuple[Stage, ...],
        terminal: TerminalHandler,
        error_handler: ErrorHandler | None = None,
    ) -> None:
        self._stages = stages
        self._terminal = terminal
        self._error_handler = error_handler

    @property
    def stage_names(self) -> tuple[str, ...]:
        return tuple(stage.name for stage in self._stages)

    def __len__(self) -> int:
        return len(self._stages)

    def __repr__(self) -> str:
        return f"Pipeline(stages={list(self.stage_names)})"

    async def handle(
        self,
        request: RequestDescriptor,
        cancel_event: asyncio.Event | None = None,
    ) -> ResponseDescriptor:
        return await self.run(RequestContext(request=request, cancel_event=cancel_event))

    async def run(self, ctx: RequestContext) -> ResponseDescriptor:
        try:
            response = await self._invoke(0, ctx)
        except StageFailure as failure:
            if self._error_handler is None:
                raise
            log.warning(
                "pipeline_failure_handled",
                stage=failure.stage,
                error=str(failure.error),
                request_id=ctx.request_id,
            )
            response = await self._error_handler(ctx, failure)
        return _merge_headers(ctx.response, response)

    async def _invoke(self, index: int, ctx: RequestContext) -> ResponseDescriptor:
        is_terminal = index >= len(self._stages)
        name = TERMINAL_STAGE_NAME if is_terminal else self._stages[index].name

        if ctx.cancelled:
            log.info("pipeline_cancelled", stage=name, request_id=ctx.request_id)
            raise PipelineCancelledError(name)

        ctx.trace.append(StageEvent(stage=name, phase="enter"))
        start = time.monotonic()
        continuation = None
        try:
            if is_terminal:
                response = await self._terminal(ctx)
            else:
                continuation = Continuation(self, index + 1, ctx, name)
                response = await self._stages[index].handler(ctx, continuation)
            if not isinstance(response, ResponseDescriptor):
                raise TypeError(
                    f"expected ResponseDescriptor, got {type(response).__name__}"
                )
        except _CONTROL_ERRORS:
            _record_exit(ctx, name, start, "failed")
            raise
        except Exception as e:
            _record_exit(ctx, name, start, "failed")
            log.error(
                "pipeline_stage_error",
                stage=name,
                error=str(e),
                error_type=type(e).__name__,
                request_id=ctx.request_id,
            )
            raise StageFailure(name, e) from e

        outcome = "ok"
        if continuation is not None and not continuation.invoked:
            outcome = "short_circuit"
            log.info(
                "pipeline_short_circuit",
                stage=name,
                status=response.status_code,
                request_id=ctx.request_id,
            )
        _record_exit(ctx, name, start, outcome)
        return response


def _record_exit(ctx: RequestContext, name: str, start: float, outcome: str) -> None:
    ctx.trace.append(
        StageEvent(
            stage=name,
            phase="exit",
            duration_ms=(time.monotonic() - start) * 1000,
            outcome=outcome,
        )
    )


def _merge_headers(
    baseline: ResponseDescriptor, response: ResponseDescriptor
) -> ResponseDescriptor:
    if not baseline.headers:
        return response
    return dataclasses.replace(response, headers={**baseline.headers, **response.headers})
