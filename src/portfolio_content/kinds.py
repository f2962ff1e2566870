"""
Content kind descriptors.

Every content type of the site (posts, projects, skills, profile sections)
has the same shape: a base table of shared fields, a translation table keyed
by (base id, locale), and for blog posts a flat tag table. The differences
are data, described here, and a single generic repository works off these
descriptors.
"""

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Optional, Tuple

from .errors import ValidationFailure

# Fields stored as JSON text (rich-content documents, string lists)
JSON_FIELDS: FrozenSet[str] = frozenset(
    {"technologies", "content", "contents", "markdown_content"}
)
BOOL_FIELDS: FrozenSet[str] = frozenset({"featured", "published"})
INT_FIELDS: FrozenSet[str] = frozenset({"display_order"})

LOCALE_PARAM = "[locale]"
SLUG_PARAM = "[slug]"


@dataclass(frozen=True)
class ContentKind:
    """Descriptor for one content kind."""

    name: str
    table: str
    translation_table: str
    foreign_key: str
    shared_fields: Tuple[str, ...]
    localized_fields: Tuple[str, ...]
    title_field: str = "title"
    admin_path: str = ""
    public_paths: Tuple[str, ...] = ()
    # (field, descending) pairs, applied left to right
    order: Tuple[Tuple[str, bool], ...] = (("created_at", True),)
    tag_table: Optional[str] = None
    publishable: bool = False
    required_shared: Tuple[str, ...] = field(default=("slug",))

    @property
    def has_slug(self) -> bool:
        return "slug" in self.shared_fields

    @property
    def has_tags(self) -> bool:
        return self.tag_table is not None

    @property
    def listing_path(self) -> Optional[str]:
        """Public listing path of this kind (the most specific non-detail path)."""
        candidates = [p for p in self.public_paths if SLUG_PARAM not in p]
        return max(candidates, key=len) if candidates else None

    @property
    def detail_paths(self) -> Tuple[str, ...]:
        return tuple(p for p in self.public_paths if p.endswith(SLUG_PARAM))

    @property
    def detail_path(self) -> Optional[str]:
        """Canonical detail path, used for sitemap entries."""
        paths = self.detail_paths
        return paths[0] if paths else None

    def is_json(self, name: str) -> bool:
        return name in JSON_FIELDS

    def is_bool(self, name: str) -> bool:
        return name in BOOL_FIELDS

    def column_type(self, name: str) -> str:
        if name in BOOL_FIELDS or name in INT_FIELDS:
            return "INTEGER"
        return "TEXT"

    def unknown_shared(self, names) -> List[str]:
        return sorted(set(names) - set(self.shared_fields))

    def unknown_localized(self, names) -> List[str]:
        return sorted(set(names) - set(self.localized_fields))


def _profile_section(
    name: str,
    table: str,
    foreign_key: str,
    shared: Tuple[str, ...],
    localized: Tuple[str, ...],
    admin_path: str,
    public_segment: str,
    order: Tuple[Tuple[str, bool], ...],
    title_field: str = "title",
    on_home: bool = False,
) -> ContentKind:
    """
    Descriptor for a /profile/<segment> section with list and detail pages.

    ``on_home`` adds the locale home page, which shows counts of the section.
    """
    home = ("/[locale]",) if on_home else ()
    return ContentKind(
        name=name,
        table=table,
        translation_table=f"{table}_translations",
        foreign_key=foreign_key,
        shared_fields=shared,
        localized_fields=localized,
        title_field=title_field,
        admin_path=admin_path,
        public_paths=home + (
            "/[locale]/profile",
            f"/[locale]/profile/{public_segment}",
            f"/[locale]/profile/{public_segment}/[slug]",
        ),
        order=order,
    )


PROFILE = ContentKind(
    name="profile",
    table="profiles",
    translation_table="profile_translations",
    foreign_key="profile_id",
    shared_fields=("email", "birth_date", "gender", "profile_image_url"),
    localized_fields=("name", "phone", "nationality", "military_service", "bio", "markdown_content"),
    title_field="name",
    admin_path="/admin/profile",
    public_paths=("/[locale]", "/[locale]/profile"),
    order=(("created_at", False),),
    required_shared=(),
)

PROJECT = ContentKind(
    name="project",
    table="projects",
    translation_table="project_translations",
    foreign_key="project_id",
    shared_fields=(
        "slug", "status", "technologies", "cover_image", "demo_url", "github_url",
        "start_date", "end_date", "featured", "display_order",
    ),
    localized_fields=("title", "description", "contents"),
    admin_path="/admin/projects",
    public_paths=(
        "/[locale]",
        "/[locale]/tech",
        "/[locale]/tech/project",
        "/[locale]/tech/project/[slug]",
        "/[locale]/projects",
        "/[locale]/projects/[slug]",
    ),
    order=(("display_order", False), ("created_at", True)),
)

SKILL = ContentKind(
    name="skill",
    table="skills",
    translation_table="skill_translations",
    foreign_key="skill_id",
    shared_fields=(
        "slug", "technologies", "icon", "cover_image", "level", "category", "display_order",
    ),
    localized_fields=("title", "description", "contents"),
    admin_path="/admin/skills",
    public_paths=(
        "/[locale]",
        "/[locale]/tech",
        "/[locale]/tech/skill",
        "/[locale]/tech/skill/[slug]",
    ),
    order=(("display_order", False), ("created_at", True)),
)

POST = ContentKind(
    name="post",
    table="posts",
    translation_table="post_translations",
    foreign_key="post_id",
    shared_fields=("slug", "cover_image", "published", "published_at"),
    localized_fields=("title", "excerpt", "content"),
    admin_path="/admin/blog",
    public_paths=("/[locale]", "/[locale]/blog", "/[locale]/blog/[slug]"),
    order=(("created_at", True),),
    tag_table="post_tags",
    publishable=True,
)

HOBBY = _profile_section(
    "hobby", "hobbies", "hobby_id",
    ("slug", "preview_image"),
    ("name", "description", "content"),
    "/admin/profile/hobbies", "hobbies",
    order=(("created_at", True),),
    title_field="name",
)

EDUCATION = _profile_section(
    "education", "education", "education_id",
    ("slug", "type", "start_date", "end_date", "preview_image"),
    ("institution", "degree", "field", "description", "content"),
    "/admin/profile/education", "education",
    order=(("start_date", True),),
    title_field="institution",
)

WORK = _profile_section(
    "work", "work_experience", "work_experience_id",
    ("slug", "type", "start_date", "end_date", "preview_image"),
    ("company", "position", "location", "description", "content"),
    "/admin/profile/work", "work",
    order=(("start_date", True),),
    title_field="company",
)

CLUB = _profile_section(
    "club", "clubs", "club_id",
    ("slug", "start_date", "end_date", "preview_image"),
    ("name", "role", "description", "content"),
    "/admin/profile/clubs", "clubs",
    order=(("start_date", True),),
    title_field="name",
)

EXPERIENCE = _profile_section(
    "experience", "experiences", "experience_id",
    ("slug", "date", "end_date", "preview_image"),
    ("title", "organization", "description", "content"),
    "/admin/profile/experiences-admin", "experiences",
    order=(("date", True),),
)

AWARD = _profile_section(
    "award", "awards", "award_id",
    ("slug", "date", "preview_image"),
    ("title", "issuer", "description", "content"),
    "/admin/profile/awards-admin", "awards",
    order=(("date", True),),
    on_home=True,
)

CERTIFICATION = _profile_section(
    "certification", "certifications", "certification_id",
    ("slug", "issue_date", "expiry_date", "preview_image"),
    ("name", "issuer", "description", "content"),
    "/admin/profile/certifications-admin", "certifications",
    order=(("issue_date", True),),
    title_field="name",
)

KINDS: Dict[str, ContentKind] = {
    kind.name: kind
    for kind in (
        PROFILE, PROJECT, SKILL, POST, HOBBY, EDUCATION,
        WORK, CLUB, EXPERIENCE, AWARD, CERTIFICATION,
    )
}


def get_kind(name: str) -> ContentKind:
    """
    Look up a content kind by name.

    Raises:
        ValidationFailure: If the kind is not known.
    """
    try:
        return KINDS[name]
    except KeyError:
        raise ValidationFailure(
            f"Content kind '{name}' is not supported. "
            f"Supported: {', '.join(sorted(KINDS))}"
        ) from None
