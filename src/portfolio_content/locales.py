"""
Locale chains for translation lookup.

A locale chain is the ordered list of locales tried when choosing which
translation of a record to show: the requested locale first, then the
configured fallbacks. When nothing in the chain matches, the resolver falls
through to the first available translation.

The fallback order is ``ko`` then ``en`` regardless of the requested locale.
It is kept as configuration so a site can override it explicitly.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

SUPPORTED_LOCALES: Tuple[str, ...] = ("ko", "en", "ja")
DEFAULT_FALLBACK_LOCALES: Tuple[str, ...] = ("ko", "en")
DEFAULT_LOCALE = "ko"

# Display order for "available in" badges
LANGUAGE_ORDER: Tuple[str, ...] = ("ko", "en", "ja")

LANGUAGE_LABELS = {
    "ko": "한국어",
    "en": "English",
    "ja": "日本語",
}


def normalize_locale(locale: Optional[str]) -> str:
    """Lower-case and strip a locale code. ``None`` becomes an empty string."""
    if not locale:
        return ""
    return str(locale).strip().lower()


def build_locale_chain(
    requested: Optional[str],
    fallbacks: Sequence[str] = DEFAULT_FALLBACK_LOCALES,
) -> List[str]:
    """
    Build the ordered list of acceptable locales.

    Args:
        requested: Locale of the incoming request (may be empty).
        fallbacks: Fallback locales, tried in order after the requested one.

    Returns:
        ``[requested, *fallbacks]`` with blanks and duplicates removed.
    """
    chain: List[str] = []
    for candidate in (requested, *fallbacks):
        code = normalize_locale(candidate)
        if code and code not in chain:
            chain.append(code)
    return chain


@dataclass(frozen=True)
class LocaleChain:
    """Immutable locale chain for a single request."""

    locales: Tuple[str, ...]

    @classmethod
    def for_request(
        cls,
        requested: Optional[str],
        fallbacks: Sequence[str] = DEFAULT_FALLBACK_LOCALES,
    ) -> "LocaleChain":
        return cls(tuple(build_locale_chain(requested, fallbacks)))

    @property
    def requested(self) -> Optional[str]:
        return self.locales[0] if self.locales else None

    def __iter__(self):
        return iter(self.locales)

    def __len__(self) -> int:
        return len(self.locales)

    def __contains__(self, locale: object) -> bool:
        return locale in self.locales


def sort_locales(locales: Iterable[str]) -> List[str]:
    """
    Order locale codes for display.

    Known locales follow LANGUAGE_ORDER; anything else goes last,
    alphabetically. Duplicates are removed.
    """
    unique = {normalize_locale(code) for code in locales if normalize_locale(code)}

    def sort_key(code: str) -> Tuple[int, str]:
        if code in LANGUAGE_ORDER:
            return (LANGUAGE_ORDER.index(code), code)
        return (len(LANGUAGE_ORDER), code)

    return sorted(unique, key=sort_key)


def is_supported(locale: Optional[str], supported: Sequence[str] = SUPPORTED_LOCALES) -> bool:
    """Check whether a locale is part of the configured locale set."""
    return normalize_locale(locale) in supported
