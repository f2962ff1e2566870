"""
Wiring of the store, repositories, coordinator and assembler.

The CLI and the web app both build one Services bundle from a Config.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

from .config import Config
from .coordinator import WriteCoordinator
from .invalidation import Invalidator
from .listing import ListingAssembler
from .repository import ContentRepository, build_repositories
from .store import SQLiteStore

logger = logging.getLogger(__name__)


@dataclass
class Services:
    config: Config
    store: SQLiteStore
    repositories: Dict[str, ContentRepository]
    coordinator: WriteCoordinator
    assembler: ListingAssembler


def build_services(
    config: Optional[Config] = None,
    db_path: Optional[Path] = None,
    invalidator: Optional[Invalidator] = None,
) -> Services:
    """
    Build every collaborator from a config.

    Args:
        config: Loaded configuration; defaults are used when None.
        db_path: Overrides the configured database path (CLI flag).
        invalidator: Receives invalidation signals; logs them when None.
    """
    config = config or Config()
    store = SQLiteStore(Path(db_path) if db_path else config.db_path)
    repositories = build_repositories(store)
    coordinator = WriteCoordinator(
        repositories,
        invalidator=invalidator,
        locales=config.locales.supported,
        atomic=config.writes.atomic,
    )
    assembler = ListingAssembler(repositories, fallbacks=config.locales.fallback)
    logger.debug(f"Services ready: db={store.db_path}, atomic={config.writes.atomic}")
    return Services(config, store, repositories, coordinator, assembler)
