import asyncio
from dataclasses import dataclass, field
from typing import Any

REQUEST_ID_KEY = "requestId"
CULTURE_KEY = "culture"
ROUTE_PARAMS_KEY = "routeParams"


@dataclass
class RequestDescriptor:
    method: str
    path: str
    query: dict[str, str] = field(default_factory=dict)
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    def __post_init__(self) -> None:
        self.method = self.method.upper()
        self.headers = {k.lower(): v for k, v in self.headers.items()}


@dataclass
class ResponseDescriptor:
    status_code: int = 200
    headers: dict[str, str] = field(default_factory=dict)
    body: Any = None


@dataclass
class StageEvent:
    stage: str
    phase: str  # enter | exit
    duration_ms: float = 0.0
    outcome: str = ""  # ok | short_circuit | failed


@dataclass
class RequestContext:
    request: RequestDescriptor
    response: ResponseDescriptor = field(default_factory=ResponseDescriptor)
    items: dict[str, Any] = field(default_factory=dict)
    cancel_event: asyncio.Event | None = None
    trace: list[StageEvent] = field(default_factory=list)

    @property
    def request_id(self) -> int | None:
        return self.items.get(REQUEST_ID_KEY)

    @request_id.setter
    def request_id(self, value: int) -> None:
        self.items[REQUEST_ID_KEY] = value

    @property
    def culture(self) -> str | None:
        return self.items.get(CULTURE_KEY)

    @culture.setter
    def culture(self, value: str) -> None:
        self.items[CULTURE_KEY] = value

    @property
    def route_params(self) -> dict[str, Any]:
        return self.items.setdefault(ROUTE_PARAMS_KEY, {})

    @property
    def cancelled(self) -> bool:
        return self.cancel_event is not None and self.cancel_event.is_set()

    def entered(self) -> list[str]:
        return [e.stage for e in self.trace if e.phase == "enter"]

    def exited(self) -> list[str]:
        return [e.stage for e in self.trace if e.phase == "exit"]
