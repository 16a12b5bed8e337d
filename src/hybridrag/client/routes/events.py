"""Agent event relay routes: append events and stream them over SSE."""

import logging

from flask import Blueprint, Response, jsonify, request, stream_with_context

from hybridrag.client.routes.config import get_config, get_organization_id
from hybridrag.errors import EventRelayFailure, ValidationError
from hybridrag.service.events import stream_events

logger = logging.getLogger(__name__)

events_bp = Blueprint("events", __name__)


def scoped_session(organization_id: str, session_id: str) -> str:
    """Relay key for a session; organizations never share session logs."""
    return f"{organization_id}:{session_id}"


@events_bp.route("/api/agent/sessions/<session_id>/events", methods=["POST"])
def append_event(session_id: str):
    """Append one event to a session.

    Expects JSON with:
        - type: Event type (required)
        - payload: Optional object

    Returns:
        201 with {position}
    """
    organization_id = get_organization_id()
    if organization_id is None:
        return jsonify({"error": "Unauthorized"}), 401

    data = request.get_json(silent=True) or {}
    payload = data.get("payload") or {}
    if not isinstance(payload, dict):
        return jsonify({"error": "payload must be an object"}), 400

    config = get_config()
    try:
        position = config.runner.run(
            config.services.events.append(
                scoped_session(organization_id, session_id), data.get("type", ""), payload
            )
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except EventRelayFailure as e:
        logger.error(f"❌ Could not append event to {session_id}: {e}")
        return jsonify({"error": "Event relay unavailable"}), 503
    return jsonify({"position": position}), 201


@events_bp.route("/api/agent/sessions/<session_id>/stream", methods=["GET"])
def stream(session_id: str):
    """Stream a session's events as Server-Sent Events.

    Query parameters:
        - after: Last position already seen by the client (default: 0)
    """
    organization_id = get_organization_id()
    if organization_id is None:
        return jsonify({"error": "Unauthorized"}), 401

    after = request.args.get("after", default=0, type=int)
    if after < 0:
        return jsonify({"error": "after must be >= 0"}), 400

    config = get_config()
    frames = config.runner.iterate(
        stream_events(config.services.events, scoped_session(organization_id, session_id), after)
    )
    logger.info(f"📡 Streaming session {session_id} from position {after}")
    return Response(
        stream_with_context(frames),
        mimetype="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
