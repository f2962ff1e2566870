"""
Tests for portfolio_content.sitemap module.
"""

from portfolio_content.sitemap import STATIC_PAGES, build_sitemap


class TestBuildSitemap:
    """Tests for build_sitemap."""

    def test_static_pages_per_locale(self, repositories):
        entries = build_sitemap(repositories, "https://example.com/", ["ko", "en"], now="T")

        urls = [entry["url"] for entry in entries]
        assert len(urls) == 2 * len(STATIC_PAGES)
        assert urls[0] == "https://example.com/ko"
        assert "https://example.com/en/tech/skill" in urls
        assert entries[0]["priority"] == 1.0
        assert entries[0]["lastmod"] == "T"

    def test_detail_pages_per_translation(self, coordinator, repositories):
        coordinator.save_translations(
            "project", None, {"slug": "site"}, {"ko": {"title": "사이트"}, "en": {"title": "Site"}}
        )
        coordinator.save_translations("skill", None, {"slug": "react"}, {"ja": {"title": "リアクト"}})

        urls = [entry["url"] for entry in build_sitemap(repositories, "https://example.com", now="T")]

        assert "https://example.com/ko/tech/project/site" in urls
        assert "https://example.com/en/tech/project/site" in urls
        assert "https://example.com/ja/tech/project/site" not in urls
        assert "https://example.com/ja/tech/skill/react" in urls

    def test_drafts_excluded(self, coordinator, repositories):
        coordinator.save_localized_content(
            "post", None, {"slug": "live", "published": True}, "en", {"title": "Live"}
        )
        coordinator.save_localized_content(
            "post", None, {"slug": "draft", "published": False}, "en", {"title": "Draft"}
        )

        urls = [entry["url"] for entry in build_sitemap(repositories, "https://example.com", now="T")]

        assert "https://example.com/en/blog/live" in urls
        assert "https://example.com/en/blog/draft" not in urls

    def test_unserved_locales_skipped(self, coordinator, repositories):
        coordinator.save_translations("skill", None, {"slug": "react"}, {"ja": {"title": "リアクト"}})

        urls = [entry["url"] for entry in build_sitemap(repositories, "https://example.com", ["ko", "en"], now="T")]

        assert not any(url.endswith("/skill/react") for url in urls)
