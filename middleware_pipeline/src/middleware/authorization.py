"""Cookie-based authorization redirects."""

from __future__ import annotations

from typing import Iterable, Optional
from urllib.parse import urlencode

from middleware_pipeline.src.core.exceptions.exceptions import ConfigurationError
from middleware_pipeline.src.core.pipeline import AsyncHandler, MiddlewareFactory
from middleware_pipeline.src.middleware.locale import split_locale_prefix
from middleware_pipeline.src.schema import PipelineResponse, RequestContext
from middleware_pipeline.src.settings import settings
from middleware_pipeline.utils.pylogger import get_python_logger

logger = get_python_logger(__name__)


def _matches_prefix(path: str, prefix: str) -> bool:
    prefix = prefix.rstrip("/")
    if not prefix:
        return True
    return path == prefix or path.startswith(prefix + "/")


def _string_option(name: str, value: object) -> str:
    if not isinstance(value, str):
        raise ConfigurationError(
            f"with_authorization option {name} must be a string, got {type(value).__name__}"
        )
    return value


def with_authorization(
    protected_paths: Optional[Iterable[str]] = None,
    login_path: Optional[str] = None,
    home_path: Optional[str] = None,
    session_cookie: Optional[str] = None,
    locales: Optional[Iterable[str]] = None,
) -> MiddlewareFactory:
    """Return a factory that redirects based on the session cookie.

    Without a session cookie, requests under a protected prefix are redirected
    to the login page with the original path in ``next``. The login page itself
    is never protected. With a session cookie, requests for the login page are
    redirected home. Everything else is delegated.

    Paths are matched after collapsing repeated slashes and dropping a locale
    segment in any case, so ``/DE/dashboard`` and ``/en//dashboard`` are both
    treated as ``/dashboard``.

    Raises:
        ConfigurationError: If an option has the wrong type, e.g. when the
            builder itself is passed to ``compose`` instead of its result.
    """
    if protected_paths is None:
        protected_paths = settings.PROTECTED_PATHS
    if isinstance(protected_paths, str) or callable(protected_paths):
        raise ConfigurationError(
            "with_authorization protected_paths must be a list of path prefixes"
        )
    protected = tuple(_string_option("protected_paths", prefix) for prefix in protected_paths)
    login_path = _string_option("login_path", login_path or settings.LOGIN_PATH)
    home_path = _string_option("home_path", home_path or settings.HOME_PATH)
    session_cookie = _string_option("session_cookie", session_cookie or settings.SESSION_COOKIE)
    locales = tuple(
        _string_option("locales", locale).lower()
        for locale in (locales if locales is not None else settings.LOCALES)
    )

    def authorization(next_handler: AsyncHandler) -> AsyncHandler:
        async def authorize(request: RequestContext) -> PipelineResponse:
            _, path = split_locale_prefix(request.path, locales)
            authenticated = bool(request.cookie(session_cookie))
            on_login_page = _matches_prefix(path, login_path)

            if authenticated and on_login_page:
                logger.info("Authenticated request for %s, redirecting to %s", request.path, home_path)
                return PipelineResponse.redirect(home_path)

            if (
                not authenticated
                and not on_login_page
                and any(_matches_prefix(path, prefix) for prefix in protected)
            ):
                location = f"{login_path}?{urlencode({'next': request.path})}"
                logger.info("Unauthenticated request for %s, redirecting to %s", request.path, location)
                return PipelineResponse.redirect(location)

            return await next_handler(request.with_state(authenticated=authenticated))

        return authorize

    return authorization
