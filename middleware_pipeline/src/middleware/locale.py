"""Locale routing stage.

Requests whose path already starts with a supported locale are delegated
with ``state["locale"]`` set. Any other request is redirected to the same
path under the negotiated locale, chosen from the locale cookie, then the
``Accept-Language`` header, then the default.
"""

from __future__ import annotations

from typing import Iterable, List, Optional, Tuple

from middleware_pipeline.src.core.exceptions.exceptions import ConfigurationError
from middleware_pipeline.src.core.pipeline import AsyncHandler, MiddlewareFactory
from middleware_pipeline.src.schema import PipelineResponse, RequestContext
from middleware_pipeline.src.settings import settings
from middleware_pipeline.utils.pylogger import get_python_logger

logger = get_python_logger(__name__)


def parse_accept_language(header: Optional[str]) -> List[str]:
    """Return language tags from an ``Accept-Language`` header, best first.

    Entries with ``q=0`` or an unparsable weight are dropped; ties keep
    header order.
    """
    if not header:
        return []

    weighted: List[Tuple[float, int, str]] = []
    for index, part in enumerate(header.split(",")):
        tag, _, params = part.strip().partition(";")
        tag = tag.strip().lower()
        if not tag or tag == "*":
            continue
        quality = 1.0
        params = params.strip()
        if params.startswith("q="):
            try:
                quality = float(params[2:])
            except ValueError:
                continue
        if quality <= 0:
            continue
        weighted.append((-quality, index, tag))

    return [tag for _, _, tag in sorted(weighted)]


def negotiate_locale(
    request: RequestContext,
    locales: Tuple[str, ...],
    default_locale: str,
    locale_cookie: str,
) -> str:
    cookie_locale = (request.cookie(locale_cookie) or "").lower()
    if cookie_locale in locales:
        return cookie_locale

    for tag in parse_accept_language(request.header("accept-language")):
        if tag in locales:
            return tag
        # "de-AT" falls back to "de"
        primary = tag.split("-", 1)[0]
        if primary in locales:
            return primary

    return default_locale


def normalize_path(path: str) -> str:
    """Collapse repeated and trailing slashes: ``/en//a/`` becomes ``/en/a``."""
    return "/" + "/".join(segment for segment in path.split("/") if segment)


def split_locale_prefix(
    path: str, locales: Tuple[str, ...]
) -> Tuple[Optional[str], str]:
    """Split a path into its locale prefix and the remaining path.

    The first segment is compared case-insensitively against ``locales``
    (which must be lower-case). Returns ``(None, normalized_path)`` when the
    path has no locale prefix.
    """
    path = normalize_path(path)
    first_segment, _, rest = path[1:].partition("/")
    if first_segment.lower() in locales:
        return first_segment.lower(), "/" + rest
    return None, path


def with_locale(
    locales: Optional[Iterable[str]] = None,
    default_locale: Optional[str] = None,
    locale_cookie: Optional[str] = None,
    ignored_prefixes: Optional[Iterable[str]] = None,
) -> MiddlewareFactory:
    """Return a factory that routes every page request under a locale prefix.

    Raises:
        ConfigurationError: If no locales are given or the default locale is
            not one of them.
    """
    locales = tuple(
        locale.lower()
        for locale in (locales if locales is not None else settings.LOCALES)
    )
    default_locale = (default_locale or settings.DEFAULT_LOCALE).lower()
    locale_cookie = locale_cookie or settings.LOCALE_COOKIE
    ignored = tuple(
        ignored_prefixes
        if ignored_prefixes is not None
        else settings.LOCALE_IGNORED_PREFIXES
    )

    if not locales:
        raise ConfigurationError("Locale routing needs at least one locale")
    if default_locale not in locales:
        raise ConfigurationError(
            f"Default locale {default_locale!r} is not one of {list(locales)}"
        )

    def locale_routing(next_handler: AsyncHandler) -> AsyncHandler:
        async def route_locale(request: RequestContext) -> PipelineResponse:
            current, path = split_locale_prefix(request.path, locales)
            if current is not None:
                return await next_handler(request.with_state(locale=current))

            if any(
                path == prefix or path.startswith(prefix.rstrip("/") + "/")
                for prefix in ignored
            ):
                return await next_handler(request)

            locale = negotiate_locale(request, locales, default_locale, locale_cookie)
            location = f"/{locale}{path}" if path != "/" else f"/{locale}"
            if request.query_string:
                location = f"{location}?{request.query_string}"

            logger.debug("Redirecting %s to locale %s", request.path, locale)
            return PipelineResponse.redirect(location)

        return route_locale

    return locale_routing
