"""
JSON web API for the portfolio content.

Provides:
- Public read endpoints mirroring the site's page paths
  (``/<locale>/blog``, ``/<locale>/tech/skill/<slug>``, ...)
- Admin write endpoints under ``/admin/api/<kind>``
- A page cache for public reads, invalidated by every write

Rendering HTML and authentication are left to the front end; responses are
the localized views as JSON.
"""

from __future__ import annotations

import functools
import logging
from pathlib import Path
from typing import Any, Callable, Optional

from flask import Flask, abort, jsonify, request

from .config import Config
from .coordinator import SaveResult
from .errors import NotFoundError, StoreUnavailable, ValidationFailure
from .invalidation import CompositeInvalidator, LoggingInvalidator, PageCache
from .kinds import KINDS, LOCALE_PARAM, SLUG_PARAM
from .locales import LANGUAGE_LABELS, is_supported
from .repository import get_repository, parse_tag_string
from .services import build_services
from .sitemap import build_sitemap

logger = logging.getLogger(__name__)

# HTTP status per SaveResult error kind
STATUS_BY_ERROR = {
    "validation": 400,
    "not_found": 404,
    "conflict": 409,
    "partial_write": 409,
    "store_unavailable": 503,
}

# Kinds with their own listing view
_CUSTOM_LISTINGS = {"profile", "post", "skill"}


def to_rule(pattern: str) -> str:
    """Turn a path pattern into a Flask URL rule."""
    return pattern.replace(LOCALE_PARAM, "<locale>").replace(SLUG_PARAM, "<slug>")


def _tags_from_body(body: dict[str, Any]) -> Optional[list[str]]:
    if "tags" not in body:
        return None
    tags = body["tags"]
    if tags is None:
        return []
    if isinstance(tags, str):
        return parse_tag_string(tags)
    return list(tags)


def _result_response(result: SaveResult, success_status: int = 200):
    status = success_status if result.success else STATUS_BY_ERROR.get(result.error_kind or "", 500)
    return jsonify(result.to_dict()), status


def create_app(config: Optional[Config] = None, db_path: Optional[Path] = None) -> Flask:
    """
    Create and configure the Flask application.

    Args:
        config: Loaded configuration; defaults when None.
        db_path: Path to the database file; overrides the config.

    Returns:
        Configured Flask application.
    """
    app = Flask(__name__)
    config = config or Config()
    supported = config.locales.supported
    page_cache = PageCache()
    services = build_services(
        config,
        db_path=db_path,
        invalidator=CompositeInvalidator(page_cache, LoggingInvalidator(supported)),
    )
    assembler = services.assembler
    coordinator = services.coordinator

    app.config["SERVICES"] = services
    app.config["PAGE_CACHE"] = page_cache
    app.json.ensure_ascii = False

    def cached(view: Callable) -> Callable:
        """Serve public GETs from the page cache; query strings bypass it."""

        @functools.wraps(view)
        def wrapper(*args, **kwargs):
            locale = kwargs.get("locale")
            if locale is not None and not is_supported(locale, supported):
                abort(404)
            if request.query_string:
                return view(*args, **kwargs)
            payload = page_cache.get(request.path)
            if payload is None:
                payload = view(*args, **kwargs)
                page_cache.set(request.path, payload)
            return jsonify(payload)

        return wrapper

    @app.errorhandler(NotFoundError)
    def handle_not_found(error: NotFoundError):
        return jsonify({"error": error.kind, "message": error.message}), 404

    @app.errorhandler(ValidationFailure)
    def handle_validation(error: ValidationFailure):
        return jsonify({"error": error.kind, "message": error.message}), 400

    @app.errorhandler(StoreUnavailable)
    def handle_store(error: StoreUnavailable):
        logger.error(f"Store unavailable: {error.message}")
        return jsonify({"error": error.kind, "message": error.message}), 503

    # ------------------------------------------------------------------
    # Public reads
    # ------------------------------------------------------------------

    @app.route("/<locale>")
    @cached
    def home(locale: str):
        profiles = assembler.assemble("profile", locale)
        return {
            "locale": locale,
            "profile": profiles[0] if profiles else None,
            "recent_posts": assembler.recent_posts(locale),
            "stats": assembler.stats(),
        }

    @app.route("/<locale>/profile")
    @cached
    def profile(locale: str):
        profiles = assembler.assemble("profile", locale)
        sections = {
            name: assembler.assemble(name, locale)
            for name in ("work", "education", "club", "experience", "award", "certification", "hobby")
        }
        return {"locale": locale, "profile": profiles[0] if profiles else None, "sections": sections}

    @app.route("/<locale>/tech")
    @cached
    def tech(locale: str):
        return {
            "locale": locale,
            "projects": assembler.assemble("project", locale),
            "skills": assembler.skills_by_category(locale),
        }

    @app.route("/<locale>/tech/skill")
    @cached
    def skill_list(locale: str):
        return {"locale": locale, "categories": assembler.skills_by_category(locale)}

    @app.route("/<locale>/projects")
    @cached
    def project_overview(locale: str):
        return {"locale": locale, "items": assembler.assemble("project", locale)}

    @app.route("/<locale>/blog")
    def blog_index(locale: str):
        if not is_supported(locale, supported):
            abort(404)
        tag = request.args.get("tag") or None
        search = request.args.get("q") or None

        def build() -> dict[str, Any]:
            return {
                "locale": locale,
                "tag": tag,
                "q": search,
                "tags": [{"name": name, "count": count} for name, count in assembler.tag_counts()],
                "posts": assembler.blog_index(locale, tag=tag, search=search),
                "language_labels": LANGUAGE_LABELS,
            }

        if tag or search:
            return jsonify(build())
        payload = page_cache.get(request.path)
        if payload is None:
            payload = build()
            page_cache.set(request.path, payload)
        return jsonify(payload)

    @app.route("/<locale>/blog/<slug>")
    @cached
    def blog_post(locale: str, slug: str):
        post = assembler.detail("post", slug, locale)
        if not post.get("published"):
            raise NotFoundError(f"post not found: {slug}")
        return post

    def register_kind_routes(kind_name: str) -> None:
        kind = KINDS[kind_name]

        def listing(locale: str):
            return {"locale": locale, "items": assembler.assemble(kind_name, locale)}

        def detail(locale: str, slug: str):
            return assembler.detail(kind_name, slug, locale)

        if kind.listing_path and kind_name not in _CUSTOM_LISTINGS:
            app.add_url_rule(
                to_rule(kind.listing_path), f"{kind_name}_list", cached(listing)
            )
        if kind_name == "post":
            return
        for index, path in enumerate(kind.detail_paths):
            endpoint = f"{kind_name}_detail" if index == 0 else f"{kind_name}_detail_{index}"
            app.add_url_rule(to_rule(path), endpoint, cached(detail))

    for name in KINDS:
        register_kind_routes(name)

    @app.route("/sitemap.json")
    def sitemap():
        return jsonify(
            build_sitemap(services.repositories, services.config.site.base_url, supported)
        )

    # ------------------------------------------------------------------
    # Admin writes
    # ------------------------------------------------------------------

    def save_from_body(kind: str, identifier: Optional[str]) -> SaveResult:
        body = request.get_json(silent=True)
        if not isinstance(body, dict):
            result = SaveResult("create" if identifier is None else "update", kind, identifier)
            result.mark_failed(ValidationFailure("Request body must be a JSON object"))
            return result

        shared = body.get("shared") or {}
        tags = _tags_from_body(body)
        if "translations" in body:
            return coordinator.save_translations(
                kind, identifier, shared, body.get("translations") or {}, tags
            )
        return coordinator.save_localized_content(
            kind,
            identifier,
            shared,
            body.get("locale") or services.config.locales.default,
            body.get("fields") or {},
            tags,
        )

    @app.route("/admin/api/<kind>", methods=["POST"])
    def admin_create(kind: str):
        return _result_response(save_from_body(kind, None), success_status=201)

    @app.route("/admin/api/<kind>/<identifier>", methods=["PUT"])
    def admin_update(kind: str, identifier: str):
        return _result_response(save_from_body(kind, identifier))

    @app.route("/admin/api/<kind>/<identifier>", methods=["DELETE"])
    def admin_delete(kind: str, identifier: str):
        return _result_response(coordinator.delete_content(kind, identifier))

    @app.route("/admin/api/<kind>", methods=["GET"])
    def admin_list(kind: str):
        locale = request.args.get("locale") or services.config.locales.default
        views = assembler.assemble(kind, locale)
        return jsonify({"kind": kind, "locale": locale, "items": views})

    @app.route("/admin/api/<kind>/<identifier>", methods=["GET"])
    def admin_get(kind: str, identifier: str):
        return jsonify(get_repository(services.repositories, kind).fetch_one(identifier))

    return app


def run_server(
    host: str = "127.0.0.1",
    port: int = 5000,
    debug: bool = False,
    config: Optional[Config] = None,
    db_path: Optional[Path] = None,
) -> None:
    """Run the development web server."""
    app = create_app(config, db_path)
    logger.info(f"Starting portfolio API at http://{host}:{port}")
    print(f"\nPortfolio API running at http://{host}:{port}")
    print("   Press Ctrl+C to stop\n")
    app.run(host=host, port=port, debug=debug)


__all__ = ["create_app", "run_server", "to_rule"]
