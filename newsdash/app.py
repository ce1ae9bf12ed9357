from datetime import timedelta
import logging

from flask import Flask, current_app, g, jsonify
from flask_cors import CORS

from . import authors, reports
from .auth import bp as auth_bp, require_auth
from .cache import TTLCache
from .config import Settings
from .ga_client import ReportClient

logger = logging.getLogger(__name__)


def _client():
    factory = current_app.config["REPORT_CLIENT_FACTORY"]
    return factory(g.credential, current_app.config["SETTINGS"])


def _serve_cached(name, cache_key, ttl, produce):
    """Return the cached payload for cache_key, or build, cache and return it."""
    cache = current_app.extensions["newsdash_cache"]
    cached = cache.get(cache_key)
    if cached is not None:
        return jsonify(cached)

    try:
        out = produce(_client())
    except Exception as e:
        logger.error("%s error: %s", name, e)
        return jsonify({"error": str(e)}), 500
    cache.set(cache_key, out, ttl=ttl)
    return jsonify(out)


def create_app(settings=None, cache=None, client_factory=None):
    settings = settings or Settings.from_env()

    app = Flask(__name__)
    app.config.update(
        SETTINGS=settings,
        SECRET_KEY=settings.session_secret,
        SESSION_COOKIE_NAME="session",
        SESSION_COOKIE_SAMESITE="Lax",
        SESSION_COOKIE_SECURE=settings.secure_cookies,
        PERMANENT_SESSION_LIFETIME=timedelta(hours=24),
        REPORT_CLIENT_FACTORY=client_factory or ReportClient,
    )
    if cache is None:
        cache = TTLCache(default_ttl=settings.realtime_ttl)
    app.extensions["newsdash_cache"] = cache
    CORS(app, origins=settings.cors_origins, supports_credentials=True)
    app.register_blueprint(auth_bp)

    realtime_ttl = settings.realtime_ttl
    report_ttl = settings.report_ttl

    # ---------- Realtime summary card ----------
    @app.route("/api/realtime", methods=["GET"])
    @require_auth
    def realtime():
        """
        Returns:
          { activeUsers, bounceRate, avgDuration, pageviewsPerMin, newPerMin, sparkline[30] }
        """
        return _serve_cached("Realtime", "rt", realtime_ttl, reports.realtime_summary)

    # ---------- Realtime - top 10 pages ----------
    @app.route("/api/top-news", methods=["GET"])
    @require_auth
    def top_news():
        return _serve_cached("Top news", "top10", realtime_ttl, reports.top_pages)

    # ---------- Last 7 days - news by state ----------
    @app.route("/api/state-news/<state>", methods=["GET"])
    @require_auth
    def state_news(state):
        state = state.lower()
        return _serve_cached(
            "State news",
            f"state_{state}",
            report_ttl,
            lambda client: reports.state_news(client, state),
        )

    # ---------- Current month - top authors ----------
    @app.route("/api/top-authors", methods=["GET"])
    @require_auth
    def top_authors():
        return _serve_cached("Authors", "authors", report_ttl, authors.top_authors)

    # ---------- Today - bounce rate & session duration ----------
    @app.route("/api/session-stats", methods=["GET"])
    @require_auth
    def session_stats():
        return _serve_cached("Session stats", "session_stats", 30, reports.session_stats)

    # ---------- Diagnostic: custom dimensions ----------
    @app.route("/api/ga4-dims", methods=["GET"])
    @require_auth
    def ga4_dims():
        try:
            dims = _client().custom_dimensions()
        except Exception as e:
            logger.error("GA4 dims error: %s", e)
            return jsonify({"error": str(e)}), 500
        return jsonify([d.to_json() for d in dims])

    # ---------- Simple health ----------
    @app.route("/health", methods=["GET"])
    def health():
        return jsonify({"status": "ok", "property": settings.property_name})

    return app
