"""Request and response values that flow through a pipeline.

``RequestContext`` is what every handler receives and ``PipelineResponse`` is
what every handler must produce. Neither type knows about ASGI; the route in
``routes/pipeline.py`` converts to and from Starlette objects.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional
from urllib.parse import urlencode

from pydantic import BaseModel, ConfigDict, Field, field_validator
from starlette.status import HTTP_200_OK, HTTP_307_TEMPORARY_REDIRECT

REDIRECT_STATUS_CODES = frozenset({301, 302, 303, 307, 308})


class RequestContext(BaseModel):
    """Immutable view of one incoming request.

    Header names are stored lower-cased so lookups are case-insensitive.
    Factories never mutate a context; they hand a modified copy to ``next``
    via :meth:`with_path` or :meth:`with_state`.
    """

    model_config = ConfigDict(frozen=True)

    method: str = "GET"
    path: str = "/"
    query: Dict[str, str] = Field(default_factory=dict)
    raw_query: str = ""
    headers: Dict[str, str] = Field(default_factory=dict)
    cookies: Dict[str, str] = Field(default_factory=dict)
    state: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("method")
    @classmethod
    def _upper_method(cls, value: str) -> str:
        return value.upper()

    @field_validator("headers")
    @classmethod
    def _lower_header_names(cls, value: Dict[str, str]) -> Dict[str, str]:
        return {name.lower(): header for name, header in value.items()}

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Read a header by case-insensitive name."""
        return self.headers.get(name.lower(), default)

    def cookie(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.cookies.get(name, default)

    @property
    def query_string(self) -> str:
        """The query string as received, or ``query`` encoded when none was kept.

        ``query`` holds only the last value of a repeated parameter, so
        redirects must use this to keep ``?a=1&a=2`` intact.
        """
        return self.raw_query or urlencode(self.query)

    def with_path(self, path: str) -> RequestContext:
        return self.model_copy(update={"path": path})

    def with_state(self, **values: Any) -> RequestContext:
        """Return a copy whose ``state`` also carries ``values``."""
        return self.model_copy(update={"state": {**self.state, **values}})


class PipelineResponse(BaseModel):
    """Response value produced by a handler, or a redirect instruction."""

    status_code: int = HTTP_200_OK
    body: Any = None
    headers: Dict[str, str] = Field(default_factory=dict)
    media_type: Optional[str] = None

    @classmethod
    def redirect(
        cls,
        location: str,
        status_code: int = HTTP_307_TEMPORARY_REDIRECT,
        headers: Optional[Mapping[str, str]] = None,
    ) -> PipelineResponse:
        if status_code not in REDIRECT_STATUS_CODES:
            raise ValueError(f"{status_code} is not a redirect status code")
        return cls(
            status_code=status_code,
            headers={**(headers or {}), "location": location},
        )

    @property
    def is_redirect(self) -> bool:
        return self.status_code in REDIRECT_STATUS_CODES and "location" in self.headers

    @property
    def location(self) -> Optional[str]:
        return self.headers.get("location")
