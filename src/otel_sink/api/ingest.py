"""OTLP/HTTP ingestion endpoints for JSON-encoded export requests.

Only ``application/json`` bodies are accepted. Protobuf payloads are answered
with 415: binary decoding belongs in front of this service.
"""

from typing import Any

import structlog
from flask import Blueprint, current_app, jsonify, request

from otel_sink.pipeline import SignalType

log = structlog.get_logger()

ingest_bp = Blueprint("ingest", __name__, url_prefix="/v1")


def _error(message: str, status: int) -> tuple[Any, int]:
    return jsonify({"error": message}), status


@ingest_bp.route("/<signal>", methods=["POST"])
def export(signal: str) -> tuple[Any, int]:
    """Accept one export request for traces, logs or metrics."""
    if not SignalType.is_valid(signal):
        return _error(f"Unknown signal type: {signal}", 404)

    if request.mimetype != "application/json":
        return _error(f"Unsupported content type: {request.mimetype or 'none'}", 415)

    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        return _error("Request body must be a JSON object", 400)

    pipeline = current_app.extensions["otel_sink"]["pipeline"]
    pipeline.accept(SignalType.parse(signal), body)

    # An empty Export*ServiceResponse signals full success
    return jsonify({}), 200
