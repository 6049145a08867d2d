"""Path router for Pipe requests.

Patterns are literal text plus ``:name`` captures, each capturing one
path segment::

    /offers                -> no params
    /offers/:id            -> {"id": ...}
    /agreements/:id/:field -> {"id": ..., "field": ...}

Entries are kept in registration order and matched first-come. The
first entry whose pattern matches the path decides the outcome, even
when it has no handler for the request method: in that case the
request is unmatched and later entries are never consulted.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import unquote

from .envelopes import PipeMethod, PipeRequest, PipeRouteHandlerResponse

logger = logging.getLogger(__name__)

HandlerResult = PipeRouteHandlerResponse | dict[str, Any] | None

# Route handler function of a pipe route (sync or async)
RouteHandler = Callable[[PipeRequest], HandlerResult | Awaitable[HandlerResult]]

_PARAM_RE = re.compile(r":([A-Za-z_][A-Za-z0-9_]*)")


@dataclass(frozen=True)
class CompiledPath:
    """A route pattern compiled into an anchored regular expression."""

    pattern: str
    regex: re.Pattern[str]
    keys: tuple[str, ...]

    def match(self, path: str) -> dict[str, str] | None:
        """Return captured params if `path` matches, else None."""
        result = self.regex.match(path)
        if result is None:
            return None
        return {key: unquote(value) for key, value in zip(self.keys, result.groups())}


def compile_path(pattern: str) -> CompiledPath:
    """Compile a ``:name`` route pattern.

    Matching is case-insensitive and accepts one trailing slash.

    Raises:
        ValueError: the pattern repeats a capture name
    """
    normalized = pattern if pattern.startswith("/") else f"/{pattern}"
    if len(normalized) > 1:
        normalized = normalized.rstrip("/")

    keys: list[str] = []
    parts: list[str] = []
    pos = 0
    for m in _PARAM_RE.finditer(normalized):
        name = m.group(1)
        if name in keys:
            raise ValueError(f"Duplicate path parameter {name!r} in pattern {pattern!r}")
        keys.append(name)
        parts.append(re.escape(normalized[pos : m.start()]))
        parts.append(r"([^/]+?)")
        pos = m.end()
    parts.append(re.escape(normalized[pos:]))

    body = "".join(parts)
    if normalized == "/":
        regex = re.compile(r"^/$")
    else:
        regex = re.compile(rf"^{body}/?$", re.IGNORECASE)
    return CompiledPath(pattern=pattern, regex=regex, keys=tuple(keys))


@dataclass
class RouteEntry:
    """A pattern and its handlers, keyed by method."""

    path: CompiledPath
    handlers: dict[PipeMethod, RouteHandler] = field(default_factory=dict)


@dataclass(frozen=True)
class RouteMatch:
    """Result of a successful route match."""

    entry: RouteEntry
    handler: RouteHandler
    path_params: dict[str, str]


class Router:
    """Ordered registry of route entries.

    Written during setup, read-only once the listener is running.
    """

    def __init__(self) -> None:
        self._entries: dict[str, RouteEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def register(self, method: PipeMethod | str, pattern: str, handler: RouteHandler) -> None:
        """Set the handler for `method` on `pattern`.

        Replaces an existing handler for the same method and pattern
        string; a new pattern string is appended to the registration order.
        """
        method = PipeMethod(method)
        entry = self._entries.get(pattern)
        if entry is None:
            entry = RouteEntry(path=compile_path(pattern))
            self._entries[pattern] = entry
        elif method in entry.handlers:
            logger.debug(f"Replacing handler for {method.value} {pattern}")
        entry.handlers[method] = handler

    def match(self, method: PipeMethod | str, path: str) -> RouteMatch | None:
        """Find the handler for a normalized request path.

        Only the first entry whose pattern matches is considered.
        """
        method = PipeMethod(method)
        for entry in self._entries.values():
            path_params = entry.path.match(path)
            if path_params is None:
                continue

            handler = entry.handlers.get(method)
            if handler is None:
                # First path match wins even without a handler for the method
                return None
            return RouteMatch(entry=entry, handler=handler, path_params=path_params)
        return None

    def routes(self) -> list[tuple[str, list[PipeMethod]]]:
        """List registered patterns with their methods, in registration order."""
        return [(pattern, list(entry.handlers)) for pattern, entry in self._entries.items()]
