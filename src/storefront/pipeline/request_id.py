import itertools
import threading

from storefront.pipeline.context import RequestContext, ResponseDescriptor
from storefront.pipeline.executor import CallNext, StageHandler

REQUEST_ID_HEADER = "X-Request-ID"


class RequestIdCounter:
    """Monotonic request identifiers, starting at 1.

    Owned by whoever builds the pipeline; tests construct a fresh one each.
    """

    def __init__(self, start: int = 1) -> None:
        self._counter = itertools.count(start)
        self._lock = threading.Lock()

    def next_id(self) -> int:
        with self._lock:
            return next(self._counter)


def request_id_stage(counter: RequestIdCounter) -> StageHandler:
    async def assign_request_id(ctx: RequestContext, call_next: CallNext) -> ResponseDescriptor:
        ctx.request_id = counter.next_id()
        ctx.response.headers[REQUEST_ID_HEADER] = str(ctx.request_id)
        return await call_next()

    return assign_request_id
