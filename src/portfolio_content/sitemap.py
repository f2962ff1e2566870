"""
Sitemap generation.

Lists every public page once per locale: the static sections, and the
detail pages of projects, skills and published posts in each locale they
have a translation for.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Sequence

from .kinds import POST, PROJECT, SKILL
from .locales import SUPPORTED_LOCALES
from .repository import ContentRepository, ListingFilter, get_repository

STATIC_PAGES = (
    "",
    "/profile",
    "/profile/hobbies",
    "/profile/experiences",
    "/profile/certifications",
    "/profile/awards",
    "/profile/clubs",
    "/profile/work",
    "/tech",
    "/tech/project",
    "/tech/skill",
    "/blog",
)


def _entry(url: str, lastmod: str, changefreq: str, priority: float) -> Dict[str, Any]:
    return {"url": url, "lastmod": lastmod, "changefreq": changefreq, "priority": priority}


def build_sitemap(
    repositories: Mapping[str, ContentRepository],
    base_url: str,
    locales: Sequence[str] = SUPPORTED_LOCALES,
    now: str = "",
) -> List[Dict[str, Any]]:
    """
    Build sitemap entries.

    Args:
        repositories: Repositories by kind name.
        base_url: Site origin without trailing slash.
        locales: Locales served by the site.
        now: Timestamp used for static pages; defaults to the current time.

    Returns:
        List of dicts with url, lastmod, changefreq and priority.
    """
    base_url = base_url.rstrip("/")
    now = now or datetime.now(timezone.utc).isoformat()

    entries: List[Dict[str, Any]] = []
    for locale in locales:
        for page in STATIC_PAGES:
            entries.append(
                _entry(f"{base_url}/{locale}{page}", now, "weekly", 1.0 if page == "" else 0.8)
            )

    detail_kinds = (
        (PROJECT, None, 0.7),
        (SKILL, None, 0.7),
        (POST, ListingFilter(published=True), 0.6),
    )
    for kind, listing_filter, priority in detail_kinds:
        repo = get_repository(repositories, kind.name)
        for record in repo.fetch_many(listing_filter):
            for translation in record["translations"]:
                locale = translation.get("locale")
                if locale not in locales or not record.get("slug"):
                    continue
                path = kind.detail_path.replace("[locale]", locale).replace("[slug]", record["slug"])
                entries.append(_entry(f"{base_url}{path}", record["updated_at"], "monthly", priority))

    return entries
