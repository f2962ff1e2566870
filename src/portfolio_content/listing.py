"""
Locale-resolved listings.

Builds what the public pages show: localized, ordered and optionally
filtered or grouped collections, the blog tag cloud, recent posts and the
home page counters.
"""

import logging
from collections import Counter
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from .locales import DEFAULT_FALLBACK_LOCALES, LocaleChain
from .repository import ContentRepository, ListingFilter, get_repository
from .resolver import resolve_all, resolve_record

logger = logging.getLogger(__name__)

UNCATEGORIZED = "Other"
UNTITLED = "(No Title)"
RECENT_POSTS_LIMIT = 3


def sort_views(
    views: List[Dict[str, Any]],
    order: Sequence[Tuple[str, bool]],
) -> List[Dict[str, Any]]:
    """
    Sort views by ``(field, descending)`` keys, leftmost key most significant.

    Missing or None values always sort last. The sort is stable.
    """
    result = list(views)
    for field_name, descending in reversed(list(order)):
        present = [v for v in result if v.get(field_name) is not None]
        missing = [v for v in result if v.get(field_name) is None]
        present.sort(key=lambda v: v[field_name], reverse=descending)
        result = present + missing
    return result


def group_by_category(
    views: List[Dict[str, Any]],
    field: str = "category",
    default: str = UNCATEGORIZED,
) -> Dict[str, List[Dict[str, Any]]]:
    """
    Group views by a field. Keys are sorted; items keep their order.

    Views with a missing or blank value land in ``default``.
    """
    groups: Dict[str, List[Dict[str, Any]]] = {}
    for view in views:
        key = view.get(field) or default
        groups.setdefault(str(key), []).append(view)
    return {key: groups[key] for key in sorted(groups)}


def count_tags(tags: Sequence[str]) -> List[Tuple[str, int]]:
    """Frequency of each tag, most used first; ties keep discovery order."""
    counts = Counter(tags)
    order = {tag: index for index, tag in enumerate(dict.fromkeys(tags))}
    return sorted(counts.items(), key=lambda item: (-item[1], order[item[0]]))


class ListingAssembler:
    """Resolves and arranges content for a requested locale."""

    def __init__(
        self,
        repositories: Mapping[str, ContentRepository],
        fallbacks: Sequence[str] = DEFAULT_FALLBACK_LOCALES,
    ):
        self.repositories = repositories
        self.fallbacks = tuple(fallbacks)

    def chain(self, locale: str) -> LocaleChain:
        return LocaleChain.for_request(locale, self.fallbacks)

    def localize(self, records: List[Mapping[str, Any]], locale: str) -> List[Dict[str, Any]]:
        return resolve_all(records, self.chain(locale))

    def assemble(
        self,
        kind: str,
        locale: str,
        listing_filter: Optional[ListingFilter] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Fetch, resolve and order every record of a kind."""
        repo = get_repository(self.repositories, kind)
        records = repo.fetch_many(listing_filter, limit=limit)
        return sort_views(self.localize(records, locale), repo.kind.order)

    def detail(self, kind: str, identifier: str, locale: str) -> Dict[str, Any]:
        """
        One localized record by id or slug.

        Raises:
            NotFoundError: If the record does not exist.
        """
        repo = get_repository(self.repositories, kind)
        return resolve_record(repo.fetch_one(identifier), self.chain(locale))

    def skills_by_category(self, locale: str) -> Dict[str, List[Dict[str, Any]]]:
        return group_by_category(self.assemble("skill", locale))

    def tag_counts(self) -> List[Tuple[str, int]]:
        repo = get_repository(self.repositories, "post")
        return count_tags(repo.tag_rows())

    def blog_index(
        self,
        locale: str,
        tag: Optional[str] = None,
        search: Optional[str] = None,
        published_only: bool = True,
    ) -> List[Dict[str, Any]]:
        """
        Blog listing with optional tag filter and text search.

        Search matches translation title or excerpt and tags; a tag filter
        narrows the search results further.
        """
        listing_filter = ListingFilter(
            published=True if published_only else None,
            tag=tag or None,
            search=search or None,
        )
        posts = self.assemble("post", locale, listing_filter)
        for post in posts:
            if not post.get("title"):
                post["title"] = UNTITLED
        logger.debug(f"Blog index for {locale}: {len(posts)} post(s), tag={tag!r}, search={search!r}")
        return posts

    def recent_posts(self, locale: str, limit: int = RECENT_POSTS_LIMIT) -> List[Dict[str, Any]]:
        """Latest published posts by publish time."""
        repo = get_repository(self.repositories, "post")
        records = repo.fetch_many(
            ListingFilter(published=True),
            order=[("published_at", True)],
            limit=limit,
        )
        posts = self.localize(records, locale)
        for post in posts:
            if not post.get("title"):
                post["title"] = UNTITLED
        return posts

    def stats(self) -> Dict[str, int]:
        """Counters shown on the home page."""
        def count(name: str, listing_filter: Optional[ListingFilter] = None) -> int:
            return get_repository(self.repositories, name).count(listing_filter)

        return {
            "posts": count("post", ListingFilter(published=True)),
            "projects": count("project"),
            "skills": count("skill"),
            "awards": count("award"),
        }
