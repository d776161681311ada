"""Health check blueprint backed by the pipeline's health monitor."""

from collections.abc import Callable
from typing import Any

from flask import Blueprint, current_app, jsonify

from otel_sink.pipeline import HealthStatus

health_bp = Blueprint("health", __name__)


@health_bp.route("/health")
def health_check() -> tuple[Any, int]:
    """Report HEALTHY/DEGRADED; 503 when degraded or any extra check fails."""
    diagnostics = current_app.extensions["otel_sink"]["diagnostics"]
    snapshot = diagnostics.health()

    checks = {"pipeline": snapshot.status is HealthStatus.HEALTHY}
    all_healthy = checks["pipeline"]

    # Run registered health checks
    health_checks = getattr(current_app, "health_checks", [])
    for check in health_checks:
        try:
            name, healthy = check()
            checks[name] = healthy
            if not healthy:
                all_healthy = False
        except Exception:
            checks[check.__name__] = False
            all_healthy = False

    status = HealthStatus.HEALTHY if all_healthy else HealthStatus.DEGRADED

    return jsonify(
        {
            "status": status.value,
            "service": current_app.name,
            "checks": checks,
            "consecutive_failures": snapshot.consecutive_failures,
        }
    ), (200 if all_healthy else 503)


def register_health_check(app: Any, check: Callable[[], tuple[str, bool]]) -> None:
    """Register an extra health check function.

    Args:
        app: Flask application
        check: Function returning (name, is_healthy) tuple
    """
    if not hasattr(app, "health_checks"):
        app.health_checks = []
    app.health_checks.append(check)
