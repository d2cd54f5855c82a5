"""Flask application exposing the ranking and the ingest trigger."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone

from flask import Flask, jsonify, request

from quake_rank.config import Settings
from quake_rank.pipeline import RankQuery, get_most_dangerous, run_ingest
from quake_rank.store import JsonFileStore, SummaryStore

logger = logging.getLogger(__name__)

RANK_ERROR = "We were unable to fetch results. Please try again"
INGEST_ERROR = "Ingest failed. It will be retried on the next scheduled run"


def create_app(store: SummaryStore | None = None, settings: Settings | None = None) -> Flask:
    settings = settings or Settings.from_env()
    store = store or JsonFileStore(settings.store_path)

    app = Flask(__name__)

    @app.route("/regions", methods=["GET"])
    def regions():
        try:
            query = RankQuery.from_params(request.args)
        except ValueError as exc:
            return jsonify({"error": str(exc)}), 400

        try:
            ranked = asyncio.run(get_most_dangerous(
                store,
                count=query.count,
                days=query.days,
                region_type=query.region_type,
                settings=settings,
            ))
        except Exception as exc:
            logger.error("Ranking failed: %s", exc, exc_info=True)
            return jsonify({"error": RANK_ERROR}), 500
        return jsonify([r.to_dict() for r in ranked]), 200

    @app.route("/ingest", methods=["POST"])
    def ingest():
        """Triggered by the scheduler."""
        try:
            result = asyncio.run(run_ingest(store, settings))
        except Exception as exc:
            logger.error("Ingest failed: %s", exc, exc_info=True)
            return jsonify({"error": INGEST_ERROR}), 500
        return jsonify(result), 200

    @app.route("/health", methods=["GET"])
    def health():
        return jsonify({
            "status": "ok",
            "service": "quake-rank",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }), 200

    @app.errorhandler(404)
    def not_found(_exc):
        return jsonify({"error": "This page doesn't exist. Perhaps you're looking for '/regions'"}), 404

    return app
