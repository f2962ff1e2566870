"""
Write coordination for localized content.

A logical save of one content item touches up to three tables: the base
row (shared fields), one translation row per edited locale, and for blog
posts the tag rows. The coordinator sequences those writes, applies the
publish-timestamp rule, decides the invalidation scope, and reports the
outcome as a structured SaveResult instead of raising.

Write Rules:
============
- Create: insert the base row, then upsert the translation for the edited
  locale. The base must exist before a translation can reference it.
- Update: update shared fields only when some are supplied, then upsert the
  edited locale's translation. Other locales are never touched, so edits
  made in the form for a previously selected locale are not carried over.
- Tags: when supplied, replace the whole tag set (empty means zero tags).
- Publishing: false -> true stamps published_at once, true -> true keeps
  the stored stamp, true -> false clears it.

Transaction Boundary:
=====================
With ``atomic`` enabled and a store that supports transactions, all writes
of one save commit together or not at all. Without it, each write commits
on its own and a translation or tag failure after the base write is
reported as a partial write: the base row persists and the localized
portion must be retried.
"""

import logging
import time
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .errors import (
    NotFoundError,
    PartialWriteFailure,
    PortfolioError,
    ValidationFailure,
)
from .invalidation import Invalidator, LoggingInvalidator, invalidation_patterns
from .kinds import ContentKind
from .locales import SUPPORTED_LOCALES, normalize_locale
from .repository import ContentRepository, get_repository
from .store import _utcnow

logger = logging.getLogger(__name__)


class SaveResult:
    """
    Outcome of a coordinated write, suitable for redisplaying a form.

    Records the completed steps, the invalidated path patterns and, on
    failure, the error kind and message.
    """

    def __init__(self, operation: str, kind: str, base_id: Optional[str] = None):
        self.operation = operation
        self.kind = kind
        self.base_id = base_id
        self.locales: List[str] = []
        self.success = True
        self.error_kind: Optional[str] = None
        self.error_message: Optional[str] = None
        self.steps: List[str] = []
        self.invalidated: List[str] = []
        self.start_time = time.time()
        self.end_time: Optional[float] = None

    def mark_complete(self) -> None:
        self.end_time = time.time()

    def mark_failed(self, error: PortfolioError) -> None:
        self.success = False
        self.error_kind = error.kind
        self.error_message = error.message
        self.end_time = time.time()

    def add_step(self, step: str) -> None:
        self.steps.append(step)

    @property
    def partial(self) -> bool:
        return self.error_kind == PartialWriteFailure.kind

    @property
    def duration_ms(self) -> float:
        end = self.end_time if self.end_time is not None else time.time()
        return (end - self.start_time) * 1000

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "operation": self.operation,
            "kind": self.kind,
            "base_id": self.base_id,
            "locales": self.locales,
            "success": self.success,
            "error_kind": self.error_kind,
            "error_message": self.error_message,
            "steps": self.steps,
            "invalidated": self.invalidated,
            "duration_ms": round(self.duration_ms, 2),
        }

    def get_summary(self) -> str:
        """Human-readable summary for flash messages and CLI output."""
        if self.partial:
            return (
                f"Partially saved {self.kind} {self.base_id}: {self.error_message}. "
                f"Retry the {', '.join(self.locales).upper()} translation."
            )
        if not self.success:
            return f"Failed: {self.error_message}"
        target = f"{self.kind} {self.base_id}" if self.base_id else self.kind
        if self.operation == "delete":
            return f"Deleted {target}"
        locales = ", ".join(self.locales).upper()
        return f"Saved {target}" + (f" ({locales})" if locales else "")


class WriteCoordinator:
    """Sequences base, translation and tag writes for every content kind."""

    def __init__(
        self,
        repositories: Mapping[str, ContentRepository],
        invalidator: Optional[Invalidator] = None,
        locales: Sequence[str] = SUPPORTED_LOCALES,
        atomic: bool = True,
        clock: Callable[[], str] = _utcnow,
    ):
        self.repositories = repositories
        self.locales = tuple(locales)
        self.invalidator = invalidator if invalidator is not None else LoggingInvalidator(self.locales)
        self.atomic = atomic
        self.clock = clock

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def save_localized_content(
        self,
        kind: str,
        identifier: Optional[str],
        shared_fields: Optional[Mapping[str, Any]],
        locale: str,
        localized_fields: Mapping[str, Any],
        tags: Optional[Iterable[Any]] = None,
    ) -> SaveResult:
        """
        Save shared fields and one locale's translation of a content item.

        Args:
            kind: Content kind name (e.g. "project").
            identifier: Base record id, or None to create a new record.
            shared_fields: Language-independent fields; None or empty skips
                the base update on existing records.
            locale: Locale of the edited translation.
            localized_fields: Every localized field for that locale.
            tags: Replacement tag set for tagged kinds, or None to keep tags.

        Returns:
            SaveResult describing the outcome.
        """
        result = SaveResult("create" if identifier is None else "update", kind, identifier)
        try:
            code = self._check_locale(locale)
            result.locales = [code]
            self._save(result, kind, identifier, shared_fields or {}, [(code, localized_fields)], tags)
        except PortfolioError as e:
            self._fail(result, e)
        return result

    def save_translations(
        self,
        kind: str,
        identifier: Optional[str],
        shared_fields: Optional[Mapping[str, Any]],
        translations_by_locale: Mapping[str, Mapping[str, Any]],
        tags: Optional[Iterable[Any]] = None,
    ) -> SaveResult:
        """
        Save several locales in one logical write.

        Locales whose title field is blank are skipped. When no locale has a
        title the save is rejected before anything is written.
        """
        result = SaveResult("create" if identifier is None else "update", kind, identifier)
        try:
            repo = get_repository(self.repositories, kind)
            title_field = repo.kind.title_field
            entries: List[Tuple[str, Mapping[str, Any]]] = []
            for locale, fields in (translations_by_locale or {}).items():
                if not _is_blank((fields or {}).get(title_field)):
                    entries.append((self._check_locale(locale), fields))
            if not entries:
                raise ValidationFailure(f"No locale has a {title_field}")
            result.locales = [code for code, _ in entries]
            self._save(result, kind, identifier, shared_fields or {}, entries, tags)
        except PortfolioError as e:
            self._fail(result, e)
        return result

    def delete_content(self, kind: str, identifier: str) -> SaveResult:
        """Delete a content item with its translations and tags."""
        result = SaveResult("delete", kind, identifier)
        logger.info(f"[DELETE] Starting: kind={kind}, id={identifier}")
        try:
            repo = get_repository(self.repositories, kind)
            repo.delete_base(identifier)
            result.add_step("delete_base")
            self._invalidate(repo.kind, result)
            result.mark_complete()
            logger.info(f"[DELETE] Completed: kind={kind}, id={identifier}, duration={result.duration_ms:.1f}ms")
        except PortfolioError as e:
            self._fail(result, e)
        return result

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _check_locale(self, locale: str) -> str:
        code = normalize_locale(locale)
        if code not in self.locales:
            raise ValidationFailure(
                f"Unsupported locale '{locale}'. Supported: {', '.join(self.locales)}"
            )
        return code

    def _validate_create(self, kind: ContentKind, shared_fields: Mapping[str, Any]) -> None:
        missing = [name for name in kind.required_shared if _is_blank(shared_fields.get(name))]
        if missing:
            raise ValidationFailure(
                f"Missing required field(s) for {kind.name}: {', '.join(missing)}"
            )

    def _validate_fields(
        self,
        repo: ContentRepository,
        shared_fields: Mapping[str, Any],
        translations: List[Tuple[str, Mapping[str, Any]]],
    ) -> None:
        kind = repo.kind
        unknown = kind.unknown_shared(shared_fields)
        if unknown:
            raise ValidationFailure(
                f"Unknown shared field(s) for {kind.name}: {', '.join(unknown)}"
            )
        for locale, fields in translations:
            unknown = kind.unknown_localized(fields or {})
            if unknown:
                raise ValidationFailure(
                    f"Unknown localized field(s) for {kind.name} ({locale}): {', '.join(unknown)}"
                )
        repo.check_values(shared_fields)
        for _, fields in translations:
            repo.check_values(fields or {})

    def _publish_fields(
        self,
        repo: ContentRepository,
        identifier: Optional[str],
        shared_fields: Mapping[str, Any],
    ) -> Dict[str, Any]:
        """Apply the publish-timestamp rule to the shared fields of a save."""
        shared = dict(shared_fields)
        if not repo.kind.publishable or "published" not in shared:
            return shared

        if "published_at" in shared:
            logger.debug("Ignoring caller-supplied published_at; it follows the published flag")
            del shared["published_at"]

        published = bool(shared["published"])
        was_published = False
        stamped_at = None
        if identifier is not None:
            existing = repo.fetch_one(identifier)
            was_published = bool(existing.get("published"))
            stamped_at = existing.get("published_at")

        if published and not was_published:
            shared["published_at"] = self.clock()
        elif published:
            shared["published_at"] = stamped_at or self.clock()
        else:
            shared["published_at"] = None
        return shared

    def _save(
        self,
        result: SaveResult,
        kind_name: str,
        identifier: Optional[str],
        shared_fields: Mapping[str, Any],
        translations: List[Tuple[str, Mapping[str, Any]]],
        tags: Optional[Iterable[Any]],
    ) -> None:
        repo = get_repository(self.repositories, kind_name)
        kind = repo.kind
        if identifier is None:
            self._validate_create(kind, shared_fields)
        self._validate_fields(repo, shared_fields, translations)
        if tags is not None and not kind.has_tags:
            raise ValidationFailure(f"{kind.name} does not support tags")
        tag_list = list(tags) if tags is not None else None

        logger.info(
            f"[SAVE] Starting {result.operation}: kind={kind.name}, id={identifier}, "
            f"locales={result.locales}, atomic={self.atomic}"
        )

        store = repo.store
        if self.atomic and getattr(store, "supports_transactions", False):
            try:
                with store.transaction():
                    self._write(result, repo, identifier, shared_fields, translations, tag_list, True)
            except PortfolioError:
                # Every write of this save was rolled back
                result.steps.clear()
                if identifier is None:
                    result.base_id = None
                raise
        else:
            self._write(result, repo, identifier, shared_fields, translations, tag_list, False)

        self._invalidate(kind, result)
        result.mark_complete()
        logger.info(
            f"[SAVE] Completed: kind={kind.name}, id={result.base_id}, "
            f"steps={result.steps}, duration={result.duration_ms:.1f}ms"
        )

    def _write(
        self,
        result: SaveResult,
        repo: ContentRepository,
        identifier: Optional[str],
        shared_fields: Mapping[str, Any],
        translations: List[Tuple[str, Mapping[str, Any]]],
        tags: Optional[List[Any]],
        in_transaction: bool,
    ) -> None:
        shared = self._publish_fields(repo, identifier, shared_fields)

        # Base first; a failure here aborts before any translation write
        if identifier is None:
            base = repo.create_base(shared)
            base_id = base["id"]
            result.add_step("create_base")
        else:
            base_id = identifier
            if shared:
                repo.update_base(base_id, shared)
                result.add_step("update_base")
            elif not repo.exists(base_id):
                raise NotFoundError(f"{repo.kind.name} not found: {base_id}")
        result.base_id = base_id

        step = "upsert_translation"
        try:
            for locale, fields in translations:
                step = f"upsert_translation:{locale}"
                repo.upsert_translation(base_id, locale, fields)
                result.add_step(step)
            if tags is not None:
                step = "replace_tags"
                repo.replace_tags(base_id, tags)
                result.add_step(step)
        except PortfolioError as e:
            base_written = any(s in ("create_base", "update_base") for s in result.steps)
            if in_transaction or not base_written:
                raise
            logger.warning(
                f"[SAVE] Partial write: kind={repo.kind.name}, id={base_id}, "
                f"failed step={step}: {e.message}"
            )
            raise PartialWriteFailure(
                f"Base record saved but {step} failed: {e.message}",
                base_id=base_id,
                step=step,
            ) from e

    def _invalidate(self, kind: ContentKind, result: SaveResult) -> None:
        for signal in invalidation_patterns(kind):
            self.invalidator.invalidate(signal.pattern, signal.scope)
            result.invalidated.append(signal.pattern)
        logger.debug(f"[INVALIDATE] {kind.name}: {result.invalidated}")

    def _fail(self, result: SaveResult, error: PortfolioError) -> None:
        result.mark_failed(error)
        if isinstance(error, PartialWriteFailure):
            result.base_id = error.base_id
            # The base row changed, so pages showing it are stale
            repo = self.repositories.get(result.kind)
            if repo is not None:
                self._invalidate(repo.kind, result)
        logger.error(
            f"[SAVE] {result.operation} {result.kind} failed ({error.kind}): "
            f"{error.message}, duration={result.duration_ms:.1f}ms"
        )


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False
