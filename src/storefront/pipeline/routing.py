import re
from dataclasses import dataclass
from typing import Any

from starlette.convertors import Convertor
from starlette.routing import compile_path

from storefront.pipeline.context import RequestContext, ResponseDescriptor
from storefront.pipeline.executor import TerminalHandler


@dataclass(frozen=True)
class Route:
    method: str
    path: str
    handler: TerminalHandler
    regex: re.Pattern[str]
    convertors: dict[str, Convertor]

    def match(self, path: str) -> dict[str, Any] | None:
        found = self.regex.match(path)
        if found is None:
            return None
        return {
            key: self.convertors[key].convert(value)
            for key, value in found.groupdict().items()
        }


class Router:
    """Terminal handler that dispatches on method and path template."""

    def __init__(self) -> None:
        self._routes: list[Route] = []

    @property
    def routes(self) -> list[Route]:
        return list(self._routes)

    def add(self, method: str, path: str, handler: TerminalHandler) -> None:
        regex, _, convertors = compile_path(path)
        self._routes.append(
            Route(
                method=method.upper(),
                path=path,
                handler=handler,
                regex=regex,
                convertors=convertors,
            )
        )

    async def __call__(self, ctx: RequestContext) -> ResponseDescriptor:
        request = ctx.request
        allowed: set[str] = set()
        for route in self._routes:
            params = route.match(request.path)
            if params is None:
                continue
            if route.method != request.method:
                allowed.add(route.method)
                continue
            ctx.route_params.update(params)
            return await route.handler(ctx)

        if allowed:
            return ResponseDescriptor(
                status_code=405,
                headers={"Allow": ", ".join(sorted(allowed))},
                body={"detail": "Method Not Allowed"},
            )
        return ResponseDescriptor(status_code=404, body={"detail": "Not Found"})
