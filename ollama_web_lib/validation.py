"""Argument validation for the web tools.

Each validator takes the raw argument mapping from a ``tools/call`` request and
returns either ``Valid(value)`` holding a typed arguments object or
``Invalid(reasons)`` listing every problem found.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Generic, Mapping, TypeVar, Union

from pydantic import AnyHttpUrl, TypeAdapter, ValidationError

MAX_RESULTS_DEFAULT = 5
MAX_RESULTS_LIMIT = 20

_HTTP_SCHEMES = ("http://", "https://")
_SCHEME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9+.-]*://")
_URL_ADAPTER = TypeAdapter(AnyHttpUrl)

T = TypeVar("T")


@dataclass(frozen=True)
class Valid(Generic[T]):
    value: T


@dataclass(frozen=True)
class Invalid:
    reasons: tuple[str, ...]

    def describe(self) -> str:
        return "; ".join(self.reasons)


Validation = Union[Valid[T], Invalid]


@dataclass(frozen=True)
class SearchArguments:
    query: str
    max_results: int = MAX_RESULTS_DEFAULT

    def to_payload(self) -> dict[str, Any]:
        return {"query": self.query, "max_results": self.max_results}


@dataclass(frozen=True)
class FetchArguments:
    url: str

    def to_payload(self) -> dict[str, Any]:
        return {"url": self.url}


SEARCH_INPUT_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "query": {
            "type": "string",
            "minLength": 1,
            "description": "Search query.",
        },
        "max_results": {
            "type": "integer",
            "minimum": 1,
            "maximum": MAX_RESULTS_LIMIT,
            "description": f"Maximum number of results (default {MAX_RESULTS_DEFAULT}).",
        },
    },
    "required": ["query"],
}

FETCH_INPUT_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "url": {
            "type": "string",
            "description": "Absolute URL to fetch; https:// is assumed when no scheme is given.",
        },
    },
    "required": ["url"],
}


def has_foreign_scheme(raw: str) -> bool:
    """True for values like ``ftp://host`` that name a scheme other than http(s)."""

    candidate = raw.strip()
    return bool(_SCHEME_RE.match(candidate)) and not candidate.lower().startswith(_HTTP_SCHEMES)


def normalize_url(raw: str) -> str:
    """Prefix ``https://`` unless the value already carries an http(s) scheme."""

    candidate = raw.strip()
    if candidate.lower().startswith(_HTTP_SCHEMES):
        return candidate
    return f"https://{candidate}"


def is_absolute_http_url(url: str) -> bool:
    try:
        parsed = _URL_ADAPTER.validate_python(url)
    except ValidationError:
        return False
    return bool(parsed.host)


def _as_integer(value: Any) -> int | None:
    # JSON has one number type, so 5.0 counts as 5.
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None


def validate_search_arguments(arguments: Mapping[str, Any] | None) -> Validation[SearchArguments]:
    payload = arguments or {}
    reasons: list[str] = []

    query = payload.get("query")
    if not isinstance(query, str):
        reasons.append("query: Search query is required.")
    elif not query.strip():
        reasons.append("query: Query must not be empty.")

    raw_max = payload.get("max_results")
    max_results = MAX_RESULTS_DEFAULT if raw_max is None else _as_integer(raw_max)
    if max_results is None:
        reasons.append("max_results: Max results must be an integer.")
    elif max_results < 1:
        reasons.append("max_results: Max results must be at least 1.")
    elif max_results > MAX_RESULTS_LIMIT:
        reasons.append(f"max_results: Max results cannot exceed {MAX_RESULTS_LIMIT}.")

    if reasons:
        return Invalid(tuple(reasons))
    return Valid(SearchArguments(query=query.strip(), max_results=max_results))


def validate_fetch_arguments(arguments: Mapping[str, Any] | None) -> Validation[FetchArguments]:
    payload = arguments or {}
    raw_url = payload.get("url")
    if not isinstance(raw_url, str) or not raw_url.strip():
        return Invalid(("url: URL is required.",))

    url = normalize_url(raw_url)
    if has_foreign_scheme(raw_url) or not is_absolute_http_url(url):
        return Invalid((f"url: URL must be valid, got {raw_url!r}.",))
    return Valid(FetchArguments(url=url))
