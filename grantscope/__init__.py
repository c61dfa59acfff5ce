"""
GrantScope Application Factory

Builds the Flask app and owns the process-wide response cache and rate
limiter.
"""
import logging
from datetime import datetime, timezone

from flask import Flask, jsonify
from werkzeug.exceptions import RequestEntityTooLarge

from grantscope.cache import ResponseCache
from grantscope.config import config
from grantscope.rate_limit import RateLimiter

__version__ = "0.1.0"


def create_app(config_name="default", cache=None, limiter=None):
    app = Flask(__name__)
    app.config.from_object(config.get(config_name, config["default"]))

    level = getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO)
    app.logger.setLevel(level)
    logging.getLogger("grantscope").setLevel(level)

    if cache is None:
        cache = ResponseCache(
            default_ttl=app.config["CACHE_DEFAULT_TTL"],
            sweep_interval=app.config["CACHE_SWEEP_INTERVAL"],
        )
    if limiter is None:
        limiter = RateLimiter(
            quota=app.config["RATELIMIT_QUOTA"],
            window=app.config["RATELIMIT_WINDOW"],
            purge_interval=app.config["RATELIMIT_PURGE_INTERVAL"],
            prefix=app.config["RATELIMIT_PREFIX"],
        )
    app.extensions["response_cache"] = cache
    limiter.init_app(app)

    from grantscope.api import api_bp, size_limit_message
    app.register_blueprint(api_bp)

    @app.errorhandler(RequestEntityTooLarge)
    def too_large(e):
        return jsonify({"error": size_limit_message()}), 400

    @app.route("/healthz")
    def healthz():
        """Health check for load balancers and monitoring"""
        from grantscope.services.openai_service import client_ready, model_name
        ok, msg = client_ready(app.config)
        return jsonify({
            "status": "ok",
            "version": app.config["APP_VERSION"],
            "openai_ready": ok,
            "openai_message": msg,
            "model": model_name(app.config),
            "cache_entries": len(cache),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        })

    @app.route("/version")
    def version():
        """Version and build info"""
        return jsonify({
            "version": app.config["APP_VERSION"],
            "build_time": app.config["BUILD_TIME"],
            "git_commit": app.config["GIT_COMMIT"],
            "features": {
                "sample_data": bool(app.config["SAMPLE_DATA_ENABLED"]),
                "csv_export": True,
                "pdf_export": True,
            }
        })

    return app
