from collections.abc import Iterable

import structlog

from storefront.errors import ConfigurationError
from storefront.pipeline.context import RequestContext, ResponseDescriptor
from storefront.pipeline.executor import (
    TERMINAL_STAGE_NAME,
    ErrorHandler,
    Pipeline,
    Stage,
    StageHandler,
    TerminalHandler,
)

log = structlog.get_logger()


async def not_found_terminal(ctx: RequestContext) -> ResponseDescriptor:
    """Terminal used when none is registered: nothing handled the request."""
    return ResponseDescriptor(status_code=404, body={"detail": "Not Found"})


def _coerce_stage(entry: Stage | tuple[str, StageHandler]) -> Stage:
    if isinstance(entry, Stage):
        return entry
    if isinstance(entry, tuple) and len(entry) == 2:
        return Stage(name=entry[0], handler=entry[1])
    raise ConfigurationError(f"Not a stage registration: {entry!r}")


def build_pipeline(
    stages: Iterable[Stage | tuple[str, StageHandler]],
    terminal: TerminalHandler | None = None,
    *,
    error_handler: ErrorHandler | None = None,
    unique_names: bool = True,
) -> Pipeline:
    """Validate stage registrations and build an immutable pipeline.

    Stages run in the order given. Without a terminal handler, requests that
    pass every stage get a 404 response.
    """
    registered = tuple(_coerce_stage(entry) for entry in stages)
    if not registered and terminal is None:
        raise ConfigurationError("A pipeline needs at least one stage or a terminal handler")

    seen: set[str] = set()
    for stage in registered:
        if not isinstance(stage.name, str) or not stage.name.strip():
            raise ConfigurationError(f"Stage name must be a non-empty string, got {stage.name!r}")
        if not callable(stage.handler):
            raise ConfigurationError(f"Stage '{stage.name}' handler is not callable")
        if unique_names:
            if stage.name == TERMINAL_STAGE_NAME:
                raise ConfigurationError(f"Stage name '{TERMINAL_STAGE_NAME}' is reserved")
            if stage.name in seen:
                raise ConfigurationError(f"Duplicate stage name '{stage.name}'")
            seen.add(stage.name)

    if terminal is not None and not callable(terminal):
        raise ConfigurationError("Terminal handler is not callable")
    if error_handler is not None and not callable(error_handler):
        raise ConfigurationError("Error handler is not callable")

    pipeline = Pipeline(
        registered,
        terminal if terminal is not None else not_found_terminal,
        error_handler,
    )
    log.debug(
        "pipeline_built",
        stages=list(pipeline.stage_names),
        error_handler=error_handler is not None,
    )
    return pipeline
