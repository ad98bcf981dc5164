"""
Flask JSON API for the research queue.

Routes
──────
GET    /api/quarters                 Active quarter, known quarters, neighbours
POST   /api/quarters/<quarter>       Switch the active quarter
GET    /api/topics                   Whole forest of the active quarter
GET    /api/queue?status=...         Flattened list with paths (status filter)
GET    /api/topics/<id>              One topic with ancestors and path
POST   /api/topics                   Create a root topic
POST   /api/topics/<id>/children     Create a sub-topic
PATCH  /api/topics/<id>              Edit status / title / description / notes
POST   /api/flush                    Commit pending text edits now
DELETE /api/topics/<id>?confirm=1    Delete a topic and its sub-topics
GET    /api/export                   Download the snapshot as queue.json
POST   /api/publish                  Write the snapshot into the data directory
POST   /api/import?confirm=1         Replace the forest from a JSON document
GET    /api/expanded                 Expanded tree nodes
PUT    /api/expanded                 Replace the expanded tree nodes

Deletion and import are destructive: without ``confirm`` they answer 409 with
the confirmation text and change nothing.
"""

from __future__ import annotations

import asyncio
import logging
import os
import sys
from typing import Optional

from dotenv import load_dotenv
from flask import Flask, Response, current_app, jsonify, request

# Allow running as `python web/app.py` from the project root
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

load_dotenv()

from config.settings import Settings
from research_queue.exchange import InvalidFormatError, dump_snapshot, export_to_directory
from research_queue.models import Topic
from research_queue.quarters import current_quarter, is_quarter
from research_queue.remote import RemoteSource
from research_queue.resolver import PersistenceResolver
from research_queue.session import Session
from research_queue.store import LocalStore
from research_queue.tree import ParentKind

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

_TRUTHY = {"1", "true", "yes"}


def build_session(settings: Settings) -> Session:
    """Wire store, remote source and resolver into an opened Session."""
    resolver = PersistenceResolver(
        LocalStore(settings.db_path),
        RemoteSource(settings.data_url, timeout=settings.remote_timeout),
    )
    session = Session(resolver, settings)
    asyncio.run(session.open())
    return session


def _session() -> Session:
    return current_app.config["SESSION"]


def _settings() -> Settings:
    return current_app.config["SETTINGS"]


def _confirmed() -> bool:
    return request.args.get("confirm", "").lower() in _TRUTHY


def _queue_item(session: Session, topic: Topic) -> dict:
    return {
        "id": topic.id,
        "title": topic.title,
        "status": topic.status,
        "path": session.topic_path(topic.id),
        "childCount": len(topic.children),
    }


def _title_and_description() -> tuple[Optional[str], str]:
    body = request.get_json(silent=True) or {}
    title = str(body.get("title", "")).strip()
    description = str(body.get("description", "")).strip()
    return (title or None), description


def create_app(settings: Optional[Settings] = None, session: Optional[Session] = None) -> Flask:
    """Application factory.

    Args:
        settings: Configuration; read from the environment when omitted.
        session: Pre-built session (tests); built from *settings* when omitted.
    """
    settings = settings or Settings()
    settings.validate()

    app = Flask(__name__)
    app.config["SETTINGS"] = settings
    app.config["SESSION"] = session or build_session(settings)

    # ── Quarters ───────────────────────────────────────────────────────────

    @app.route("/api/quarters")
    def get_quarters():
        session = _session()
        previous, following = session.neighbours()
        return jsonify(
            {
                "active": session.active_quarter,
                "current": current_quarter(),
                "available": session.available_quarters,
                "previous": previous,
                "next": following,
                "canGoNext": session.can_go_next,
                "dirty": session.dirty,
                "statuses": _settings().statuses,
            }
        )

    @app.route("/api/quarters/<quarter>", methods=["POST"])
    def switch_quarter(quarter: str):
        if not is_quarter(quarter):
            return jsonify({"error": f"Not a quarter: {quarter}"}), 400
        session = _session()
        asyncio.run(session.switch_quarter(quarter))
        return jsonify({"active": session.active_quarter, "topicCount": len(session.topics)})

    # ── Topics ─────────────────────────────────────────────────────────────

    @app.route("/api/topics")
    def list_topics():
        session = _session()
        return jsonify(
            {
                "quarter": session.active_quarter,
                "topics": [t.to_json_dict() for t in session.topics],
            }
        )

    @app.route("/api/queue")
    def queue():
        """Flattened queue view; ``status`` filters, ``all`` or absent lists everything."""
        session = _session()
        status = request.args.get("status") or None
        topics = session.flatten_filtered(status)
        return jsonify([_queue_item(session, t) for t in topics])

    @app.route("/api/topics/<topic_id>")
    def get_topic(topic_id: str):
        session = _session()
        topic = session.find(topic_id)
        if topic is None:
            return jsonify({"error": "Not found"}), 404
        lookup = session.parent_of(topic_id)
        return jsonify(
            {
                "topic": topic.to_json_dict(),
                "ancestors": [
                    {"id": a.id, "title": a.title} for a in session.resolve_ancestors(topic_id)
                ],
                "path": session.topic_path(topic_id),
                "parentId": lookup.parent.id if lookup.kind is ParentKind.PARENT else None,
            }
        )

    @app.route("/api/topics", methods=["POST"])
    def create_topic():
        title, description = _title_and_description()
        if title is None:
            return jsonify({"error": "title is required"}), 400
        topic = _session().create_topic(title, description)
        return jsonify(topic.to_json_dict()), 201

    @app.route("/api/topics/<topic_id>/children", methods=["POST"])
    def create_child(topic_id: str):
        title, description = _title_and_description()
        if title is None:
            return jsonify({"error": "title is required"}), 400
        child = _session().create_child(topic_id, title, description)
        if child is None:
            return jsonify({"error": "Not found"}), 404
        return jsonify(child.to_json_dict()), 201

    @app.route("/api/topics/<topic_id>", methods=["PATCH"])
    def update_topic(topic_id: str):
        patch = request.get_json(silent=True)
        if not isinstance(patch, dict):
            return jsonify({"error": "JSON object body required"}), 400
        if "status" in patch and patch["status"] not in _settings().statuses:
            return jsonify({"error": f"Unknown status: {patch['status']}"}), 400
        try:
            updated = _session().update_fields(topic_id, patch)
        except ValueError as exc:
            return jsonify({"error": str(exc)}), 400
        if not updated:
            return jsonify({"error": "Not found"}), 404
        return jsonify({"updated": topic_id})

    @app.route("/api/flush", methods=["POST"])
    def flush():
        return jsonify({"committed": _session().flush_edits()})

    @app.route("/api/topics/<topic_id>", methods=["DELETE"])
    def delete_topic(topic_id: str):
        session = _session()
        message = session.deletion_message(topic_id)
        if message is None:
            return jsonify({"error": "Not found"}), 404
        if not _confirmed():
            return jsonify({"confirm": message}), 409

        lookup = session.parent_of(topic_id)
        session.delete_subtree(topic_id)
        return jsonify(
            {
                "deleted": topic_id,
                "parentId": lookup.parent.id if lookup.kind is ParentKind.PARENT else None,
            }
        )

    # ── Export / Import ────────────────────────────────────────────────────

    @app.route("/api/export")
    def export_snapshot():
        snapshot = _session().export_snapshot()
        return Response(
            dump_snapshot(snapshot),
            mimetype="application/json",
            headers={"Content-Disposition": "attachment; filename=queue.json"},
        )

    @app.route("/api/publish", methods=["POST"])
    def publish_snapshot():
        settings = _settings()
        if settings.data_url.startswith(("http://", "https://")):
            return jsonify({"error": "Snapshot source is remote and read-only"}), 400
        snapshot = _session().export_snapshot()
        path = export_to_directory(settings.data_url, snapshot)
        return jsonify({"quarter": snapshot.quarter, "path": str(path)})

    @app.route("/api/import", methods=["POST"])
    def import_document():
        session = _session()
        raw = request.get_data()
        try:
            imported = session.preview_import(raw)
        except InvalidFormatError as exc:
            logger.info("Rejected import: %s", exc)
            return jsonify({"error": f"Failed to import: {exc}"}), 400

        if not _confirmed():
            return (
                jsonify(
                    {
                        "confirm": session.import_message(imported),
                        "quarter": imported.quarter,
                        "topicCount": len(imported.topics),
                        "totalCount": imported.total_count,
                    }
                ),
                409,
            )

        imported = session.import_document(raw)
        return jsonify(
            {
                "quarter": session.active_quarter,
                "topicCount": len(imported.topics),
                "totalCount": imported.total_count,
            }
        )

    # ── Expanded nodes ─────────────────────────────────────────────────────

    @app.route("/api/expanded")
    def get_expanded():
        return jsonify(sorted(_session().expanded))

    @app.route("/api/expanded", methods=["PUT"])
    def put_expanded():
        body = request.get_json(silent=True)
        if not isinstance(body, list):
            return jsonify({"error": "JSON array body required"}), 400
        _session().set_expanded({str(node_id) for node_id in body})
        return jsonify(sorted(_session().expanded))

    return app


# ── Entry point ────────────────────────────────────────────────────────────

if __name__ == "__main__":
    settings = Settings()
    app = create_app(settings)
    try:
        app.run(debug=settings.debug, host="0.0.0.0", port=settings.port)
    finally:
        app.config["SESSION"].close()
