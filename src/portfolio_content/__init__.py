"""
Portfolio Content - localized content core for a multilingual portfolio site.

This package provides:
- A SQLite store with one base table and one translation table per content kind
- Locale-chain translation resolution with deterministic fallback
- Coordinated writes of base, translation and tag rows with cache invalidation
- Listing helpers for the public pages (skills by category, blog tags, stats)
"""

__version__ = "1.0.0"
__author__ = "Portfolio Content Contributors"

# Errors
from .errors import (
    ConfigurationError,
    ConflictOnWrite,
    NotFoundError,
    PartialWriteFailure,
    PortfolioError,
    StoreUnavailable,
    ValidationFailure,
)

# Content kinds and locales
from .kinds import KINDS, ContentKind, get_kind
from .locales import LocaleChain, build_locale_chain

# Resolution
from .resolver import pick_translation, resolve, resolve_record

# Storage and writes
from .store import SQLiteStore
from .repository import ContentRepository, ListingFilter, build_repositories
from .coordinator import SaveResult, WriteCoordinator
from .listing import ListingAssembler

__all__ = [
    # Errors
    "PortfolioError",
    "ConfigurationError",
    "NotFoundError",
    "ValidationFailure",
    "ConflictOnWrite",
    "PartialWriteFailure",
    "StoreUnavailable",
    # Kinds and locales
    "KINDS",
    "ContentKind",
    "get_kind",
    "LocaleChain",
    "build_locale_chain",
    # Resolution
    "pick_translation",
    "resolve",
    "resolve_record",
    # Storage and writes
    "SQLiteStore",
    "ContentRepository",
    "ListingFilter",
    "build_repositories",
    "SaveResult",
    "WriteCoordinator",
    "ListingAssembler",
]
