"""
Tests for portfolio_content.web module.

Tests the public read routes, the admin write API and page cache
invalidation through the Flask test client.
"""

import pytest

from portfolio_content.web import create_app, to_rule


@pytest.fixture
def app(db_path):
    app = create_app(db_path=db_path)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()


def _create(client, kind, shared, locale, fields, **extra):
    body = {"shared": shared, "locale": locale, "fields": fields}
    body.update(extra)
    return client.post(f"/admin/api/{kind}", json=body)


class TestToRule:
    """Tests for pattern to URL rule conversion."""

    def test_to_rule(self):
        assert to_rule("/[locale]/tech/skill/[slug]") == "/<locale>/tech/skill/<slug>"


class TestAdminApi:
    """Tests for the admin write endpoints."""

    def test_create(self, client):
        response = _create(client, "skill", {"slug": "react"}, "en", {"title": "React"})

        assert response.status_code == 201
        data = response.get_json()
        assert data["success"] is True
        assert data["base_id"]
        assert "/admin/skills" in data["invalidated"]

    def test_create_validation_error(self, client):
        response = _create(client, "skill", {}, "en", {"title": "React"})

        assert response.status_code == 400
        assert response.get_json()["error_kind"] == "validation"

    def test_non_scalar_field_is_bad_request(self, client):
        response = _create(client, "skill", {"slug": "react"}, "en", {"title": {"a": 1}})

        assert response.status_code == 400
        assert response.get_json()["error_kind"] == "validation"

    def test_create_conflict(self, client):
        _create(client, "skill", {"slug": "react"}, "en", {"title": "React"})

        response = _create(client, "skill", {"slug": "react"}, "en", {"title": "React"})

        assert response.status_code == 409

    def test_non_json_body(self, client):
        response = client.post("/admin/api/skill", data="nope", content_type="text/plain")

        assert response.status_code == 400

    def test_update_and_get(self, client):
        base_id = _create(client, "skill", {"slug": "react"}, "en", {"title": "React"}).get_json()["base_id"]

        response = client.put(
            f"/admin/api/skill/{base_id}",
            json={"shared": {"level": "expert"}, "locale": "ko", "fields": {"title": "리액트"}},
        )

        assert response.status_code == 200
        record = client.get(f"/admin/api/skill/{base_id}").get_json()
        assert record["level"] == "expert"
        assert [t["locale"] for t in record["translations"]] == ["en", "ko"]

    def test_update_missing(self, client):
        response = client.put("/admin/api/skill/missing", json={"locale": "en", "fields": {"title": "x"}})

        assert response.status_code == 404

    def test_multi_locale_body(self, client):
        response = client.post(
            "/admin/api/post",
            json={
                "shared": {"slug": "hello", "published": True},
                "translations": {"en": {"title": "Hello"}, "ko": {"title": ""}},
                "tags": "greeting, intro",
            },
        )

        data = response.get_json()
        assert response.status_code == 201
        assert data["locales"] == ["en"]
        record = client.get(f"/admin/api/post/{data['base_id']}").get_json()
        assert record["tags"] == ["greeting", "intro"]

    def test_delete(self, client):
        base_id = _create(client, "skill", {"slug": "react"}, "en", {"title": "React"}).get_json()["base_id"]

        assert client.delete(f"/admin/api/skill/{base_id}").status_code == 200
        assert client.delete(f"/admin/api/skill/{base_id}").status_code == 404
        assert client.get(f"/admin/api/skill/{base_id}").status_code == 404

    def test_unknown_kind(self, client):
        response = _create(client, "gadget", {"slug": "x"}, "en", {"title": "x"})

        assert response.status_code == 400

    def test_admin_list(self, client):
        _create(client, "skill", {"slug": "react"}, "en", {"title": "React"})

        data = client.get("/admin/api/skill?locale=en").get_json()

        assert data["items"][0]["title"] == "React"


class TestPublicRoutes:
    """Tests for the public read routes."""

    def test_unsupported_locale(self, client):
        assert client.get("/fr/blog").status_code == 404
        assert client.get("/fr/tech/skill").status_code == 404

    def test_skill_page_grouped(self, client):
        _create(client, "skill", {"slug": "react", "category": "Frontend"}, "en", {"title": "React"})
        _create(client, "skill", {"slug": "git"}, "en", {"title": "Git"})

        data = client.get("/ko/tech/skill").get_json()

        assert list(data["categories"]) == ["Frontend", "Other"]

    def test_skill_detail(self, client):
        _create(client, "skill", {"slug": "react"}, "ko", {"title": "리액트"})

        response = client.get("/en/tech/skill/react")

        assert response.status_code == 200
        assert response.get_json()["title"] == "리액트"

    def test_project_detail_on_both_paths(self, client):
        _create(client, "project", {"slug": "site"}, "en", {"title": "Site"})

        assert client.get("/en/tech/project/site").get_json()["title"] == "Site"
        assert client.get("/ko/projects/site").get_json()["title"] == "Site"

    def test_detail_missing(self, client):
        assert client.get("/en/tech/skill/missing").status_code == 404

    def test_profile_section_listing(self, client):
        _create(client, "award", {"slug": "prize", "date": "2023-05-01"}, "en", {"title": "Prize"})

        data = client.get("/en/profile/awards").get_json()

        assert data["items"][0]["title"] == "Prize"

    def test_home(self, client):
        _create(client, "profile", {"email": "me@example.com"}, "ko", {"name": "홍길동"})
        _create(client, "post", {"slug": "hello", "published": True}, "en", {"title": "Hello"})

        data = client.get("/en").get_json()

        assert data["profile"]["name"] == "홍길동"
        assert [post["slug"] for post in data["recent_posts"]] == ["hello"]
        assert data["stats"]["posts"] == 1

    def test_blog_index_with_filters(self, client):
        _create(client, "post", {"slug": "a", "published": True}, "en", {"title": "Alpha"}, tags=["x"])
        _create(client, "post", {"slug": "b", "published": True}, "en", {"title": "Beta"}, tags=["y"])

        assert [p["slug"] for p in client.get("/en/blog?tag=x").get_json()["posts"]] == ["a"]
        assert [p["slug"] for p in client.get("/en/blog?q=beta").get_json()["posts"]] == ["b"]
        assert len(client.get("/en/blog").get_json()["posts"]) == 2

    def test_draft_post_hidden(self, client):
        _create(client, "post", {"slug": "draft", "published": False}, "en", {"title": "Draft"})

        assert client.get("/en/blog/draft").status_code == 404

    def test_sitemap(self, client):
        entries = client.get("/sitemap.json").get_json()

        assert any(entry["url"].endswith("/ko/tech") for entry in entries)


class TestPageCache:
    """Tests for page cache behavior across writes."""

    def test_write_invalidates_cached_page(self, app, client):
        cache = app.config["PAGE_CACHE"]
        _create(client, "skill", {"slug": "react", "category": "Frontend"}, "en", {"title": "React"})

        first = client.get("/en/tech/skill").get_json()
        assert "/en/tech/skill" in cache
        assert client.get("/en/tech/skill").get_json() == first
        assert cache.hits == 1

        _create(client, "skill", {"slug": "flask", "category": "Backend"}, "en", {"title": "Flask"})

        assert "/en/tech/skill" not in cache
        assert list(client.get("/en/tech/skill").get_json()["categories"]) == ["Backend", "Frontend"]

    def test_unrelated_write_keeps_cache(self, app, client):
        cache = app.config["PAGE_CACHE"]
        client.get("/en/tech/skill")

        _create(client, "post", {"slug": "hello"}, "en", {"title": "Hello"})

        assert "/en/tech/skill" in cache

    def test_query_string_not_cached(self, app, client):
        client.get("/en/blog?tag=x")

        assert len(app.config["PAGE_CACHE"]) == 0

    def test_home_stats_follow_writes(self, app, client):
        assert client.get("/en").get_json()["stats"]["skills"] == 0
        assert "/en" in app.config["PAGE_CACHE"]

        assert _create(client, "skill", {"slug": "react"}, "en", {"title": "React"}).status_code == 201
        assert _create(client, "project", {"slug": "site"}, "en", {"title": "Site"}).status_code == 201
        _create(client, "award", {"slug": "prize"}, "en", {"title": "Prize"})

        stats = client.get("/en").get_json()["stats"]
        assert (stats["skills"], stats["projects"], stats["awards"]) == (1, 1, 1)
