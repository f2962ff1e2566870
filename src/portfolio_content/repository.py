"""
Generic content repository.

One ContentRepository instance serves one content kind. It owns the reads
(base rows with nested translations and tags) and writes (base insert and
update, translation upsert keyed by (base id, locale), tag replacement,
delete with cascade) for that kind. The kind's descriptor supplies table
names and field lists, so every content type shares this code.

Records are plain dicts::

    {
        "id": "4f0c...",
        "slug": "react",
        "category": "Frontend",
        "created_at": "...",
        "updated_at": "...",
        "translations": [{"locale": "en", "title": "React", ...}, ...],
        "tags": ["python", "web"],  # tagged kinds only
    }
"""

import json
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Collection, Dict, Iterable, List, Mapping, Optional, Set

from .errors import NotFoundError, ValidationFailure
from .kinds import ContentKind, get_kind
from .store import Order, SQLiteStore, _utcnow

logger = logging.getLogger(__name__)

# Columns of a translation row that never reach a localized view
_TRANSLATION_BOOKKEEPING = {"id", "created_at", "updated_at"}

# Values accepted as-is by non-JSON columns
_SCALAR_TYPES = (str, int, float, bool)


@dataclass
class ListingFilter:
    """
    Kind-specific listing filter.

    ``ids``, ``tag`` and ``search`` narrow the listing to a set of base ids;
    when combined they intersect. An empty resulting id set means "no
    results", never "no constraint".
    """

    published: Optional[bool] = None
    ids: Optional[Collection[str]] = None
    tag: Optional[str] = None
    search: Optional[str] = None

    @property
    def constrains_ids(self) -> bool:
        return self.ids is not None or bool(self.tag) or bool(self.search)


def generate_id() -> str:
    """Generate a new opaque base record identifier."""
    return uuid.uuid4().hex


def clean_tags(tags: Optional[Iterable[Any]]) -> List[str]:
    """Strip tags, drop blanks and collapse duplicates keeping first occurrence."""
    cleaned: List[str] = []
    for tag in tags or []:
        text = str(tag).strip() if tag is not None else ""
        if text and text not in cleaned:
            cleaned.append(text)
    return cleaned


def parse_tag_string(value: Optional[str]) -> List[str]:
    """Split a comma-separated tag field as submitted by the admin form."""
    if not value:
        return []
    return clean_tags(value.split(","))


class ContentRepository:
    """Reads and writes base records and their translations for one kind."""

    def __init__(
        self,
        kind: ContentKind,
        store: SQLiteStore,
        clock: Callable[[], str] = _utcnow,
    ):
        self.kind = kind
        self.store = store
        self.clock = clock

    # ------------------------------------------------------------------
    # Encoding
    # ------------------------------------------------------------------

    def _encode(self, name: str, value: Any) -> Any:
        if value is None:
            return None
        if self.kind.is_json(name):
            try:
                return json.dumps(value, ensure_ascii=False, sort_keys=True)
            except (TypeError, ValueError) as e:
                raise ValidationFailure(
                    f"{self.kind.name}.{name} is not JSON serializable: {e}"
                ) from e
        if self.kind.is_bool(name):
            return 1 if value else 0
        if not isinstance(value, _SCALAR_TYPES):
            raise ValidationFailure(
                f"{self.kind.name}.{name} must be a string, number or boolean, "
                f"got {type(value).__name__}"
            )
        return value

    def check_values(self, fields: Mapping[str, Any]) -> None:
        """Raise ValidationFailure if any value cannot be stored as given."""
        for name, value in fields.items():
            self._encode(name, value)

    def _decode(self, name: str, value: Any) -> Any:
        if value is None:
            return None
        if self.kind.is_json(name) and isinstance(value, str):
            try:
                return json.loads(value)
            except json.JSONDecodeError:
                logger.warning(f"Invalid JSON stored in {self.kind.name}.{name}; returning raw text")
                return value
        if self.kind.is_bool(name):
            return bool(value)
        return value

    def _decode_row(self, row: Mapping[str, Any]) -> Dict[str, Any]:
        return {name: self._decode(name, value) for name, value in row.items()}

    def _check_shared(self, fields: Mapping[str, Any]) -> None:
        unknown = self.kind.unknown_shared(fields)
        if unknown:
            raise ValidationFailure(
                f"Unknown shared field(s) for {self.kind.name}: {', '.join(unknown)}"
            )

    def _check_localized(self, fields: Mapping[str, Any]) -> None:
        unknown = self.kind.unknown_localized(fields)
        if unknown:
            raise ValidationFailure(
                f"Unknown localized field(s) for {self.kind.name}: {', '.join(unknown)}"
            )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _attach_children(self, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        if not rows:
            return []
        kind = self.kind
        ids = [row["id"] for row in rows]

        translations: Dict[str, List[Dict[str, Any]]] = {base_id: [] for base_id in ids}
        for trans in self.store.select(
            kind.translation_table,
            in_=(kind.foreign_key, ids),
            order=[("locale", False)],
        ):
            base_id = trans[kind.foreign_key]
            clean = {
                name: self._decode(name, value)
                for name, value in trans.items()
                if name not in _TRANSLATION_BOOKKEEPING and name != kind.foreign_key
            }
            translations[base_id].append(clean)

        tags: Dict[str, List[str]] = {base_id: [] for base_id in ids}
        if kind.has_tags:
            for tag_row in self.store.select(
                kind.tag_table,
                in_=(kind.foreign_key, ids),
                order=[("id", False)],
            ):
                tags[tag_row[kind.foreign_key]].append(tag_row["tag"])

        records = []
        for row in rows:
            record = self._decode_row(row)
            record["translations"] = translations[row["id"]]
            if kind.has_tags:
                record["tags"] = tags[row["id"]]
            records.append(record)
        return records

    def fetch_one(self, identifier: str) -> Dict[str, Any]:
        """
        Fetch one record by id, or by slug for kinds that have one.

        Raises:
            NotFoundError: If no record matches.
        """
        rows = self.store.select(self.kind.table, where={"id": identifier})
        if not rows and self.kind.has_slug:
            rows = self.store.select(self.kind.table, where={"slug": identifier})
        if not rows:
            raise NotFoundError(f"{self.kind.name} not found: {identifier}")
        return self._attach_children(rows)[0]

    def _filter_ids(self, listing_filter: ListingFilter) -> Optional[Set[str]]:
        """
        Resolve the id-constraining parts of a filter through the child tables.

        Returns None when the filter does not constrain ids.
        """
        kind = self.kind
        ids: Optional[Set[str]] = None
        if listing_filter.ids is not None:
            ids = set(listing_filter.ids)

        if listing_filter.search:
            needle = listing_filter.search.strip()
            text_fields = [f for f in kind.localized_fields if not kind.is_json(f)]
            matched = set(
                self.store.search_values(
                    kind.translation_table, kind.foreign_key, text_fields, needle
                )
            )
            if kind.has_tags:
                matched.update(
                    self.store.search_values(kind.tag_table, kind.foreign_key, ["tag"], needle)
                )
            ids = matched if ids is None else ids & matched

        if listing_filter.tag:
            if not kind.has_tags:
                raise ValidationFailure(f"{kind.name} does not support tags")
            tagged = set(
                self.store.distinct_values(
                    kind.tag_table, kind.foreign_key, where={"tag": listing_filter.tag}
                )
            )
            ids = tagged if ids is None else ids & tagged

        return ids

    def _base_where(self, listing_filter: ListingFilter) -> Dict[str, Any]:
        where: Dict[str, Any] = {}
        if listing_filter.published is not None and "published" in self.kind.shared_fields:
            where["published"] = 1 if listing_filter.published else 0
        return where

    def fetch_many(
        self,
        listing_filter: Optional[ListingFilter] = None,
        order: Optional[Order] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """
        Fetch records with nested translations, filtered and ordered.

        When the filter resolves to an empty id set the result is empty and
        the base table is not queried.
        """
        listing_filter = listing_filter or ListingFilter()
        ids = self._filter_ids(listing_filter)
        if ids is not None and not ids:
            logger.debug(f"{self.kind.name} listing filter matched no ids; short-circuiting")
            return []

        rows = self.store.select(
            self.kind.table,
            where=self._base_where(listing_filter),
            in_=("id", sorted(ids)) if ids is not None else None,
            order=order if order is not None else self.kind.order,
            limit=limit,
        )
        return self._attach_children(rows)

    def count(self, listing_filter: Optional[ListingFilter] = None) -> int:
        listing_filter = listing_filter or ListingFilter()
        ids = self._filter_ids(listing_filter)
        if ids is not None and not ids:
            return 0
        return self.store.count(
            self.kind.table,
            where=self._base_where(listing_filter),
            in_=("id", sorted(ids)) if ids is not None else None,
        )

    def exists(self, base_id: str) -> bool:
        return self.store.count(self.kind.table, where={"id": base_id}) > 0

    def tag_rows(self) -> List[str]:
        """Every tag row of this kind, in insertion order."""
        if not self.kind.has_tags:
            return []
        rows = self.store.select(self.kind.tag_table, order=[("id", False)], columns=["tag"])
        return [row["tag"] for row in rows]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_base(self, shared_fields: Mapping[str, Any]) -> Dict[str, Any]:
        """Insert a new base record. The identifier is assigned here."""
        self._check_shared(shared_fields)
        now = self.clock()
        row: Dict[str, Any] = {"id": generate_id()}
        for name in self.kind.shared_fields:
            row[name] = self._encode(name, shared_fields.get(name))
        row["created_at"] = now
        row["updated_at"] = now

        self.store.insert(self.kind.table, row)
        logger.debug(f"Created {self.kind.name} base: id={row['id']}")
        return self._decode_row(row)

    def update_base(self, base_id: str, shared_fields: Mapping[str, Any]) -> None:
        """
        Update shared fields of a base record.

        Raises:
            NotFoundError: If the record does not exist.
        """
        self._check_shared(shared_fields)
        values = {name: self._encode(name, value) for name, value in shared_fields.items()}
        values["updated_at"] = self.clock()
        changed = self.store.update(self.kind.table, ("id", base_id), values)
        if changed == 0:
            raise NotFoundError(f"{self.kind.name} not found: {base_id}")
        logger.debug(f"Updated {self.kind.name} base: id={base_id}, fields={sorted(shared_fields)}")

    def upsert_translation(
        self,
        base_id: str,
        locale: str,
        localized_fields: Mapping[str, Any],
    ) -> Dict[str, Any]:
        """
        Insert or fully overwrite the translation for (base_id, locale).

        Localized fields missing from the input are stored as NULL; a write
        always replaces every localized field of that locale.
        """
        self._check_localized(localized_fields)
        kind = self.kind
        now = self.clock()
        row: Dict[str, Any] = {kind.foreign_key: base_id, "locale": locale}
        for name in kind.localized_fields:
            row[name] = self._encode(name, localized_fields.get(name))
        row["created_at"] = now
        row["updated_at"] = now

        self.store.upsert(
            kind.translation_table,
            row,
            conflict=(kind.foreign_key, "locale"),
            preserve=("created_at",),
        )
        logger.debug(f"Upserted {kind.name} translation: id={base_id}, locale={locale}")
        translation = {"locale": locale}
        translation.update({name: localized_fields.get(name) for name in kind.localized_fields})
        return translation

    def replace_tags(self, base_id: str, tags: Optional[Iterable[Any]]) -> List[str]:
        """
        Replace every tag of a record. Empty input leaves zero tags.

        Raises:
            ValidationFailure: If the kind has no tags.
        """
        kind = self.kind
        if not kind.has_tags:
            raise ValidationFailure(f"{kind.name} does not support tags")

        cleaned = clean_tags(tags)
        with self.store.transaction():
            self.store.delete(kind.tag_table, (kind.foreign_key, base_id))
            self.store.insert_many(
                kind.tag_table,
                [{kind.foreign_key: base_id, "tag": tag} for tag in cleaned],
            )
        logger.debug(f"Replaced {kind.name} tags: id={base_id}, tags={cleaned}")
        return cleaned

    def delete_base(self, base_id: str) -> None:
        """
        Delete a record. Translations and tags go with it.

        Raises:
            NotFoundError: If the record does not exist.
        """
        deleted = self.store.delete(self.kind.table, ("id", base_id))
        if deleted == 0:
            raise NotFoundError(f"{self.kind.name} not found: {base_id}")
        logger.debug(f"Deleted {self.kind.name} base: id={base_id}")


def build_repositories(
    store: SQLiteStore,
    clock: Callable[[], str] = _utcnow,
) -> Dict[str, ContentRepository]:
    """Create one repository per kind known to the store."""
    return {kind.name: ContentRepository(kind, store, clock) for kind in store.kinds}


def get_repository(
    repositories: Mapping[str, ContentRepository],
    kind_name: str,
) -> ContentRepository:
    """Look up a repository, raising ValidationFailure for unknown kinds."""
    kind = get_kind(kind_name)
    try:
        return repositories[kind.name]
    except KeyError:
        raise ValidationFailure(f"No repository configured for {kind.name}") from None
