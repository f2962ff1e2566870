"""
Tests for portfolio_content.listing module.

Tests localized listings, grouping, blog index, tag counts and stats.
"""

import pytest

from portfolio_content.errors import NotFoundError
from portfolio_content.listing import (
    UNCATEGORIZED,
    UNTITLED,
    count_tags,
    group_by_category,
    sort_views,
)


class TestHelpers:
    """Tests for the pure listing helpers."""

    def test_sort_views_nulls_last(self):
        views = [{"n": None, "k": "a"}, {"n": 2, "k": "b"}, {"n": 1, "k": "c"}]

        assert [v["k"] for v in sort_views(views, [("n", False)])] == ["c", "b", "a"]
        assert [v["k"] for v in sort_views(views, [("n", True)])] == ["b", "c", "a"]

    def test_sort_views_multiple_keys(self):
        views = [
            {"order": 1, "created_at": "1"},
            {"order": 0, "created_at": "1"},
            {"order": 1, "created_at": "2"},
        ]

        result = sort_views(views, [("order", False), ("created_at", True)])

        assert result == [
            {"order": 0, "created_at": "1"},
            {"order": 1, "created_at": "2"},
            {"order": 1, "created_at": "1"},
        ]

    def test_group_by_category(self):
        views = [
            {"category": "Frontend", "title": "React"},
            {"category": None, "title": "Git"},
            {"category": "Backend", "title": "Flask"},
            {"category": "Frontend", "title": "Vue"},
        ]

        groups = group_by_category(views)

        assert list(groups) == ["Backend", "Frontend", UNCATEGORIZED]
        assert [v["title"] for v in groups["Frontend"]] == ["React", "Vue"]
        assert groups[UNCATEGORIZED][0]["title"] == "Git"

    def test_count_tags(self):
        assert count_tags(["web", "python", "python", "sqlite", "web", "python"]) == [
            ("python", 3), ("web", 2), ("sqlite", 1),
        ]

    def test_count_tags_ties_keep_discovery_order(self):
        assert count_tags(["b", "a", "a", "b"]) == [("b", 2), ("a", 2)]


class TestSkillsByCategory:
    """Tests for the skills page grouping."""

    def test_skills_grouped_and_localized(self, coordinator, assembler):
        """Test the skills page with a Korean request and partial translations."""
        coordinator.save_translations(
            "skill", None, {"slug": "react", "category": "Frontend", "display_order": 1},
            {"ko": {"title": "리액트"}, "en": {"title": "React"}},
        )
        coordinator.save_translations(
            "skill", None, {"slug": "flask", "category": "Backend", "display_order": 1},
            {"en": {"title": "Flask"}},
        )
        coordinator.save_translations(
            "skill", None, {"slug": "vue", "category": "Frontend", "display_order": 0},
            {"ja": {"title": "ビュー"}},
        )
        coordinator.save_translations(
            "skill", None, {"slug": "git"},
            {"en": {"title": "Git"}},
        )

        groups = assembler.skills_by_category("ko")

        assert list(groups) == ["Backend", "Frontend", "Other"]
        assert [s["title"] for s in groups["Frontend"]] == ["ビュー", "리액트"]
        assert groups["Backend"][0]["title"] == "Flask"
        assert groups["Backend"][0]["available_locales"] == ["en"]
        assert groups["Other"][0]["slug"] == "git"

    def test_empty(self, assembler):
        assert assembler.skills_by_category("en") == {}


class TestAssemble:
    """Tests for assemble and detail."""

    def test_project_order(self, coordinator, assembler):
        for slug, order in [("b", 2), ("a", 1), ("c", None)]:
            coordinator.save_localized_content(
                "project", None, {"slug": slug, "display_order": order}, "en", {"title": slug.upper()}
            )

        views = assembler.assemble("project", "en")

        assert [v["slug"] for v in views] == ["a", "b", "c"]

    def test_record_without_translation_still_listed(self, assembler, repositories):
        repositories["project"].create_base({"slug": "bare"})

        views = assembler.assemble("project", "en")

        assert views[0]["slug"] == "bare"
        assert "title" not in views[0]

    def test_detail_by_slug(self, coordinator, assembler):
        coordinator.save_translations(
            "skill", None, {"slug": "react"}, {"en": {"title": "React"}, "ko": {"title": "리액트"}}
        )

        assert assembler.detail("skill", "react", "en")["title"] == "React"
        assert assembler.detail("skill", "react", "ja")["title"] == "리액트"

    def test_detail_missing(self, assembler):
        with pytest.raises(NotFoundError):
            assembler.detail("skill", "missing", "en")

    def test_custom_fallbacks(self, coordinator, repositories):
        from portfolio_content.listing import ListingAssembler

        coordinator.save_translations(
            "skill", None, {"slug": "react"}, {"en": {"title": "React"}, "ko": {"title": "리액트"}}
        )
        assembler = ListingAssembler(repositories, fallbacks=["en", "ko"])

        assert assembler.detail("skill", "react", "ja")["title"] == "React"


class TestBlog:
    """Tests for blog_index, tag_counts, recent_posts and stats."""

    @pytest.fixture
    def blog(self, coordinator):
        coordinator.save_localized_content(
            "post", None, {"slug": "one", "published": True}, "en",
            {"title": "Python tips", "excerpt": "Speed"}, tags=["python", "tips"],
        )
        coordinator.save_localized_content(
            "post", None, {"slug": "two", "published": True}, "ko",
            {"title": "", "excerpt": "웹"}, tags=["web", "python"],
        )
        coordinator.save_localized_content(
            "post", None, {"slug": "draft", "published": False}, "en",
            {"title": "Draft"}, tags=["python"],
        )
        coordinator.save_localized_content(
            "post", None, {"slug": "three", "published": True}, "en",
            {"title": "SQLite notes"}, tags=[],
        )
        coordinator.save_localized_content(
            "post", None, {"slug": "four", "published": True}, "en",
            {"title": "Flask notes"}, tags=["web"],
        )

    def test_index_lists_published_only(self, assembler, blog):
        slugs = [post["slug"] for post in assembler.blog_index("en")]

        assert slugs == ["four", "three", "two", "one"]

    def test_untitled_placeholder(self, assembler, blog):
        posts = {post["slug"]: post for post in assembler.blog_index("en")}

        assert posts["two"]["title"] == UNTITLED

    def test_tag_filter(self, assembler, blog):
        slugs = [post["slug"] for post in assembler.blog_index("en", tag="python")]

        assert slugs == ["two", "one"]

    def test_search(self, assembler, blog):
        slugs = [post["slug"] for post in assembler.blog_index("en", search="notes")]

        assert slugs == ["four", "three"]

    def test_tag_and_search_narrow(self, assembler, blog):
        slugs = [post["slug"] for post in assembler.blog_index("en", tag="web", search="notes")]

        assert slugs == ["four"]

    def test_unknown_tag_empty(self, assembler, blog):
        assert assembler.blog_index("en", tag="nope") == []

    def test_tag_counts_include_drafts(self, assembler, blog):
        assert assembler.tag_counts() == [("python", 3), ("web", 2), ("tips", 1)]

    def test_recent_posts(self, assembler, blog):
        recent = assembler.recent_posts("en")

        assert [post["slug"] for post in recent] == ["four", "three", "two"]

    def test_stats(self, coordinator, assembler, blog):
        coordinator.save_localized_content("project", None, {"slug": "p"}, "en", {"title": "P"})
        coordinator.save_localized_content("award", None, {"slug": "a"}, "en", {"title": "A"})

        assert assembler.stats() == {"posts": 4, "projects": 1, "skills": 0, "awards": 1}


class TestEndToEnd:
    """Scenarios across repository, coordinator and assembler."""

    def test_skill_grouped_for_english(self, coordinator, assembler):
        coordinator.save_translations(
            "skill", None, {"slug": "react", "category": "Frontend"},
            {"ko": {"title": "리액트"}, "en": {"title": "React"}},
        )

        groups = assembler.skills_by_category("en")

        assert list(groups) == ["Frontend"]
        assert len(groups["Frontend"]) == 1
        assert groups["Frontend"][0]["title"] == "React"

    def test_korean_request_falls_back_to_english(self, coordinator, assembler):
        coordinator.save_translations(
            "project", None, {"slug": "site"}, {"ja": {"title": "サイト"}, "en": {"title": "Site"}}
        )

        assert assembler.detail("project", "site", "ko")["title"] == "Site"

    def test_upsert_then_read_back(self, repositories, assembler):
        base = repositories["skill"].create_base({"slug": "react"})

        repositories["skill"].upsert_translation(base["id"], "en", {"title": "A"})

        assert assembler.detail("skill", base["id"], "en")["title"] == "A"
