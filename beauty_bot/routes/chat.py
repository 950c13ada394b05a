# beauty_bot/routes/chat.py
"""
Chat endpoint
─────────────
POST /api/chat  {query, history?, session_id?}

400 for a missing/blank query, 500 with an apology payload when the pipeline
itself blows up. Dependency failures never reach this layer; the pipeline
degrades instead.
"""

from __future__ import annotations

import json
import logging

from flask import Blueprint, Response, current_app, jsonify, request

from ..response_assembler import error_payload

log = logging.getLogger(__name__)
bp = Blueprint("chat", __name__)


def _log_final_payload(payload: dict, session_id: str) -> None:
    compact = json.dumps(payload, ensure_ascii=False, separators=(",", ":"), default=str)
    log.info(f"📤 FINAL_PAYLOAD | session={session_id} | size_bytes={len(compact)}")
    log.debug(f"📤 FINAL_PAYLOAD_BODY | payload={compact}")


@bp.post("/chat")
async def chat() -> Response:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({"error": "Invalid query provided"}), 400

    query = data.get("query")
    if not isinstance(query, str) or not query.strip():
        return jsonify({"error": "Invalid query provided"}), 400

    session_id = data.get("session_id")
    if not isinstance(session_id, str) or not session_id.strip():
        session_id = None

    pipeline = current_app.extensions["pipeline"]
    try:
        payload = await pipeline.process(query, data.get("history"), session_id=session_id)
    except Exception as e:
        log.error(f"CHAT_ERROR | session={session_id} | error={e}", exc_info=True)
        return jsonify(error_payload(e)), 500

    _log_final_payload(payload, session_id or "stateless")
    return jsonify(payload), 200
