"""Read-only diagnostics endpoints."""

from typing import Any

from flask import Blueprint, current_app, jsonify, request

status_bp = Blueprint("status", __name__, url_prefix="/api")


def _diagnostics() -> Any:
    return current_app.extensions["otel_sink"]["diagnostics"]


@status_bp.route("/status")
def status() -> Any:
    """Health, statistics and output directory in one document."""
    return jsonify(_diagnostics().snapshot().model_dump(mode="json"))


@status_bp.route("/stats")
def stats() -> Any:
    snapshot = _diagnostics().statistics()
    return jsonify({**snapshot.model_dump(), "total": snapshot.total})


@status_bp.route("/files")
def files() -> Any:
    """List telemetry files; ``?signal=traces`` narrows to one signal."""
    signal = request.args.get("signal")
    infos = _diagnostics().files(signal)
    return jsonify(
        {
            "files": [info.model_dump(mode="json") for info in infos],
            "total_size_bytes": sum(info.size_bytes for info in infos),
        }
    )
