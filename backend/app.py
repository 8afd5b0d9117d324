"""
Flask backend for the Study Buddy application.

This module provides the REST API endpoints for the tutoring service.
"""
import os
import uuid
from typing import Any, Dict, Optional

from flask import Flask, jsonify, request
from flask_cors import CORS

from config import CORS_HEADERS, CORS_METHODS, CORS_ORIGINS, logger
from dispatcher import handle


# -----------------------------
# App
# -----------------------------
app = Flask(__name__)
CORS(
    app,
    resources={r"/api/*": {"origins": CORS_ORIGINS}},
    methods=CORS_METHODS,
    allow_headers=CORS_HEADERS,
    send_wildcard=CORS_ORIGINS == "*",
    supports_credentials=False,
)

TUTOR_ROUTES = ("/api/solution", "/api/motivation")


@app.get("/health")
def health():
    """Health check endpoint."""
    return jsonify({"status": "ok"}), 200


def _json_response(payload: Dict[str, Any], status: int, request_id: str):
    response = jsonify(payload)
    response.status_code = status
    response.headers["X-Request-Id"] = request_id
    return response


def _preflight_response():
    response = app.make_response(("", 204))
    # flask-cors only adds headers when the request carries Origin.
    if CORS_ORIGINS == "*" and not request.headers.get("Origin"):
        response.headers["Access-Control-Allow-Origin"] = "*"
        response.headers["Access-Control-Allow-Methods"] = ", ".join(CORS_METHODS)
        response.headers["Access-Control-Allow-Headers"] = ", ".join(CORS_HEADERS)
    return response


def _read_body() -> Optional[Any]:
    # Unparseable or non-JSON bodies come back as None and fail validation.
    return request.get_json(force=True, silent=True)


def tutor_endpoint():
    """
    Tutoring endpoint shared by every route in TUTOR_ROUTES.

    OPTIONS answers CORS preflight with 204, GET is a liveness probe and
    POST dispatches on the body's `action` field (see dispatcher.ACTIONS).
    """
    if request.method == "OPTIONS":
        return _preflight_response()

    if request.method == "GET":
        return jsonify({"ok": True, "route": request.path}), 200

    request_id = request.headers.get("X-Request-Id") or str(uuid.uuid4())
    try:
        payload, status = handle(_read_body(), request_id)
        return _json_response(payload, status, request_id)
    except Exception as exc:
        logger.exception("tutor_unhandled request_id=%s route=%s err=%s", request_id, request.path, exc)
        return _json_response({"error": "Internal server error."}, 500, request_id)


for _route in TUTOR_ROUTES:
    app.add_url_rule(
        _route,
        endpoint=_route.strip("/").replace("/", "_"),
        view_func=tutor_endpoint,
        methods=["GET", "POST", "OPTIONS"],
    )


if __name__ == "__main__":
    # Dev-friendly defaults; use a real WSGI server (gunicorn/uvicorn) in production.
    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", "5000"))
    debug = os.getenv("FLASK_DEBUG", "0") == "1"
    app.run(host=host, port=port, debug=debug)
