from flask import Flask, Response, jsonify, request
from werkzeug.exceptions import HTTPException

from supply_tracker.cli import register_tracker_cli
from supply_tracker.config import Config
from supply_tracker.observability import (
    configure_json_logging,
    ensure_request_id,
    mark_request_start,
    metrics_snapshot,
    observe_response,
    prometheus_metrics_text,
)
from supply_tracker.services import EXTENSION_KEY, build_services, get_services


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)
    configure_json_logging(app)

    app.extensions[EXTENSION_KEY] = build_services(app.config)
    _register_error_handlers(app)
    _register_feed_delivery(app)
    _register_blueprints(app)
    _register_health(app)
    register_tracker_cli(app)
    _maybe_start_mirror(app)
    return app


def _register_feed_delivery(app: Flask) -> None:
    @app.before_request
    def _deliver_pending_feed_events() -> None:
        get_services(app).deliver_pending()


def _maybe_start_mirror(app: Flask) -> None:
    if not bool(app.config.get("MIRROR_AUTOSTART", True)):
        return
    get_services(app).mirror.start()


def _register_blueprints(app: Flask) -> None:
    from supply_tracker.routes.tracker_routes import tracker_bp

    app.register_blueprint(tracker_bp)


def _register_error_handlers(app: Flask) -> None:
    from supply_tracker.errors import AppError, SystemError

    @app.before_request
    def _ensure_request_id() -> None:
        ensure_request_id()
        mark_request_start()

    @app.after_request
    def _append_request_id(response):
        response.headers["X-Request-Id"] = ensure_request_id()
        return observe_response(response)

    def _log_error(error: AppError, request_id: str) -> None:
        log_method = app.logger.error if error.critical else app.logger.warning
        log_method(
            "application_error",
            extra={
                "request_id": request_id,
                "error_code": error.code,
                "http_status": error.http_status,
                "message_key": error.message_key,
                "details": error.details,
                "request_path": request.path,
                "http_method": request.method,
            },
            exc_info=error.critical,
        )

    @app.errorhandler(AppError)
    def _handle_app_error(exc: AppError):
        request_id = ensure_request_id()
        _log_error(exc, request_id)
        return jsonify(exc.to_response_payload(request_id)), exc.http_status

    @app.errorhandler(Exception)
    def _handle_unexpected(exc: Exception):
        if isinstance(exc, HTTPException):
            return exc

        request_id = ensure_request_id()
        mapped = SystemError(
            code="unexpected_error",
            message_key="unexpected_error",
            http_status=500,
            critical=True,
            details=str(exc),
        )
        app.logger.exception(
            "unexpected_exception",
            extra={
                "request_id": request_id,
                "error_code": mapped.code,
                "request_path": request.path,
                "http_method": request.method,
            },
        )
        return jsonify(mapped.to_response_payload(request_id)), mapped.http_status


def _register_health(app: Flask) -> None:
    @app.route("/health")
    def health():
        services = get_services(app)
        backend = str(app.config.get("DOCUMENT_STORE") or "memory").strip().lower()
        loading = bool(services.state.loading.get())
        payload = {
            "status": "ok",
            "store": backend,
            "mirror": {
                "running": services.mirror.running,
                "loading": loading,
                "documents": len(services.mirror.snapshot()),
            },
            "metrics": metrics_snapshot(),
        }
        if not services.mirror.running or services.notifications.current.show:
            payload["status"] = "degraded"
        return payload, 200

    @app.route("/metrics")
    def metrics():
        view_sizes = get_services(app).order_views().counts()
        body = prometheus_metrics_text(view_sizes=view_sizes)
        return Response(body, mimetype="text/plain; version=0.0.4")
