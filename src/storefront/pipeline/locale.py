import enum
import re
from collections.abc import Iterable

import structlog

from storefront.errors import ConfigurationError, LocaleParseError
from storefront.pipeline.context import RequestContext, ResponseDescriptor
from storefront.pipeline.executor import CallNext, StageHandler

log = structlog.get_logger()

FALLBACK_LOCALE = "en-US"

_TAG_PATTERN = re.compile(
    r"^(?P<language>[A-Za-z]{2,3})"
    r"(?:[-_](?P<script>[A-Za-z]{4}))?"
    r"(?:[-_](?P<region>[A-Za-z]{2}|[0-9]{3}))?$"
)


class LocalePolicy(str, enum.Enum):
    REJECT = "reject"
    FALLBACK = "fallback"


def parse_locale_tag(tag: str) -> str:
    """Normalise a ``language[-Script][-REGION]`` tag, e.g. ``fr-fr`` -> ``fr-FR``."""
    match = _TAG_PATTERN.match(tag.strip())
    if match is None:
        raise LocaleParseError(tag)

    parts = [match["language"].lower()]
    if match["script"]:
        parts.append(match["script"].title())
    if match["region"]:
        parts.append(match["region"].upper())
    return "-".join(parts)


class LocaleResolver:
    """Pick the culture for one request.

    Order: a valid supported override, then the configured default, then
    ``FALLBACK_LOCALE``. What happens to a bad override depends on ``policy``.
    """

    def __init__(
        self,
        default: str | None,
        supported: Iterable[str],
        policy: LocalePolicy = LocalePolicy.FALLBACK,
    ) -> None:
        try:
            self._supported = {parse_locale_tag(tag) for tag in supported}
            default_tag = parse_locale_tag(default) if default else FALLBACK_LOCALE
        except LocaleParseError as e:
            raise ConfigurationError(f"Bad locale configuration: {e}") from e

        # The hard-coded fallback is always servable.
        self._supported.add(FALLBACK_LOCALE)
        if default_tag not in self._supported:
            raise ConfigurationError(
                f"Default culture '{default_tag}' is not in the supported cultures"
            )
        self.default = default_tag
        self.policy = LocalePolicy(policy)

    @property
    def supported(self) -> frozenset[str]:
        return frozenset(self._supported)

    def parse(self, value: str) -> str:
        tag = parse_locale_tag(value)
        if tag not in self._supported:
            raise LocaleParseError(value, "unsupported culture")
        return tag

    def resolve(self, override: str | None) -> str:
        if not override:
            return self.default
        try:
            return self.parse(override)
        except LocaleParseError as e:
            if self.policy is LocalePolicy.REJECT:
                raise
            log.warning(
                "locale_override_ignored",
                culture=override,
                reason=e.reason,
                fallback=self.default,
            )
            return self.default


def locale_stage(resolver: LocaleResolver, query_key: str = "culture") -> StageHandler:
    async def select_locale(ctx: RequestContext, call_next: CallNext) -> ResponseDescriptor:
        try:
            ctx.culture = resolver.resolve(ctx.request.query.get(query_key))
        except LocaleParseError as e:
            return ResponseDescriptor(
                status_code=400,
                body={"detail": str(e), "culture": e.value},
            )
        ctx.response.headers["Content-Language"] = ctx.culture
        return await call_next()

    return select_locale
