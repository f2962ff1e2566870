"""
Cache and route invalidation.

Every write must mark stale each page that could render the changed
content. Paths are expressed as patterns in which ``[locale]`` and ``[slug]``
stand for one path segment, e.g. ``/[locale]/tech/project/[slug]``.

Provides:
- invalidation_patterns(): the admin path and public path families of a kind
- expand_pattern(): concrete paths of a pattern for a set of locales
- Invalidator implementations: recording, logging and an in-memory page cache
"""

import logging
import re
import threading
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol, Sequence

from .kinds import LOCALE_PARAM, SLUG_PARAM, ContentKind
from .locales import SUPPORTED_LOCALES

logger = logging.getLogger(__name__)

SCOPE_PAGE = "page"

_PARAM_RE = re.compile(r"\[[A-Za-z_]+\]")


@dataclass(frozen=True)
class InvalidationSignal:
    """One path pattern to mark stale."""

    pattern: str
    scope: str = SCOPE_PAGE


class Invalidator(Protocol):
    def invalidate(self, pattern: str, scope: str = SCOPE_PAGE) -> None:
        ...


def invalidation_patterns(kind: ContentKind) -> List[InvalidationSignal]:
    """
    Every path family a write to ``kind`` can affect.

    The admin listing is locale-agnostic; public families are
    locale-parameterized.
    """
    signals: List[InvalidationSignal] = []
    if kind.admin_path:
        signals.append(InvalidationSignal(kind.admin_path))
    for path in kind.public_paths:
        signals.append(InvalidationSignal(path))
    return signals


def expand_pattern(
    pattern: str,
    locales: Sequence[str],
    slug: Optional[str] = None,
) -> List[str]:
    """
    Concrete paths for a pattern.

    ``[locale]`` expands to every given locale. ``[slug]`` is filled in when
    a slug is given; otherwise the pattern is returned with the slug
    placeholder left in place.
    """
    if slug is not None:
        pattern = pattern.replace(SLUG_PARAM, slug)
    if LOCALE_PARAM not in pattern:
        return [pattern]
    return [pattern.replace(LOCALE_PARAM, locale) for locale in locales]


def pattern_to_regex(pattern: str) -> "re.Pattern[str]":
    """Compile a path pattern; each ``[param]`` matches exactly one segment."""
    parts = _PARAM_RE.split(pattern)
    params = _PARAM_RE.findall(pattern)
    regex = ""
    for index, part in enumerate(parts):
        regex += re.escape(part)
        if index < len(params):
            regex += r"[^/]+"
    return re.compile(f"^{regex}$")


class RecordingInvalidator:
    """Collects signals. Used by tests and dry runs."""

    def __init__(self):
        self.signals: List[InvalidationSignal] = []

    def invalidate(self, pattern: str, scope: str = SCOPE_PAGE) -> None:
        self.signals.append(InvalidationSignal(pattern, scope))

    @property
    def patterns(self) -> List[str]:
        return [signal.pattern for signal in self.signals]

    def clear(self) -> None:
        self.signals.clear()


class LoggingInvalidator:
    """
    Logs each signal with the concrete paths it covers.

    Default when nothing caches rendered pages.
    """

    def __init__(self, locales: Sequence[str] = SUPPORTED_LOCALES):
        self.locales = tuple(locales)

    def invalidate(self, pattern: str, scope: str = SCOPE_PAGE) -> None:
        paths = expand_pattern(pattern, self.locales)
        logger.info(f"[INVALIDATE] {pattern} ({scope}): {', '.join(paths)}")


class PageCache:
    """
    In-memory cache of rendered responses keyed by request path.

    ``invalidate`` drops every cached path matching the pattern.
    """

    def __init__(self):
        self._entries: Dict[str, Any] = {}
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get(self, path: str) -> Optional[Any]:
        with self._lock:
            if path in self._entries:
                self.hits += 1
                return self._entries[path]
            self.misses += 1
            return None

    def set(self, path: str, value: Any) -> None:
        with self._lock:
            self._entries[path] = value

    def __contains__(self, path: str) -> bool:
        return path in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def paths(self) -> List[str]:
        with self._lock:
            return sorted(self._entries)

    def invalidate(self, pattern: str, scope: str = SCOPE_PAGE) -> None:
        regex = pattern_to_regex(pattern)
        with self._lock:
            stale = [path for path in self._entries if regex.match(path)]
            for path in stale:
                del self._entries[path]
        if stale:
            logger.debug(f"[INVALIDATE] {pattern}: dropped {len(stale)} cached page(s)")

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


class CompositeInvalidator:
    """Fan a signal out to several invalidators."""

    def __init__(self, *targets: Invalidator):
        self.targets = list(targets)

    def invalidate(self, pattern: str, scope: str = SCOPE_PAGE) -> None:
        for target in self.targets:
            target.invalidate(pattern, scope)
