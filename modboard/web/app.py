"""
ModBoard Web Interface

Thin Flask layer over the board and admin services. Request bodies are
JSON; every failure answers {"error": <code>} with the status of the
raised BoardError.
"""

import logging
import math
from typing import TYPE_CHECKING, Optional

from flask import Blueprint, Flask, jsonify, request
from werkzeug.exceptions import HTTPException

from ..exceptions import BadRequest, BoardError, RateLimited

if TYPE_CHECKING:
    from ..core.app import ModBoard

logger = logging.getLogger(__name__)


def _body() -> dict:
    """JSON request body as a dict ({} for anything else)."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _admin_token() -> Optional[str]:
    """Admin token from X-Admin-Token or an Authorization bearer header."""
    token = request.headers.get("X-Admin-Token", "").strip()
    if token:
        return token

    auth = request.headers.get("Authorization", "")
    scheme, _, value = auth.partition(" ")
    if scheme.lower() == "bearer" and value.strip():
        return value.strip()
    return None


def _source() -> str:
    return request.remote_addr or "unknown"


def _parse_bool(value, default: bool = True) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "1", "yes"):
        return True
    if isinstance(value, str) and value.strip().lower() in ("false", "0", "no"):
        return False
    raise BadRequest(f"Expected a boolean, got {value!r}", code="hidden")


def create_app(board: "ModBoard") -> Flask:
    """
    Build the Flask application.

    Args:
        board: Configured ModBoard instance
    """
    app = Flask(__name__)
    app.config["MAX_CONTENT_LENGTH"] = board.config.web.max_request_mb * 1024 * 1024
    app.json.sort_keys = False

    service = board.board_service
    admin = board.admin_service

    api = Blueprint("board_api", __name__, url_prefix=board.config.web.api_prefix.rstrip("/"))

    # === Public ===

    @api.get("/ping")
    def ping():
        return jsonify(ok=True)

    @api.get("/threads")
    def list_threads():
        threads = service.list_threads(
            sort=request.args.get("sort", "new"),
            since=request.args.get("since")
        )
        return jsonify(threads=threads)

    @api.post("/threads")
    def create_thread():
        data = _body()
        thread = service.create_thread(
            title=data.get("title"),
            body=data.get("body"),
            tags=data.get("tags"),
            author_id=data.get("authorId"),
            source=_source()
        )
        return jsonify(thread=thread)

    @api.get("/threads/<thread_id>")
    def get_thread(thread_id):
        thread = service.get_thread(thread_id, viewer_id=request.args.get("viewerId", ""))
        return jsonify(thread=thread)

    @api.post("/threads/<thread_id>/posts")
    def add_post(thread_id):
        data = _body()
        post = service.add_post(
            thread_id,
            body=data.get("body"),
            author_id=data.get("authorId"),
            source=_source()
        )
        return jsonify(post=post)

    @api.patch("/threads/<thread_id>/tags")
    def merge_tags(thread_id):
        thread = service.merge_tags(thread_id, _body().get("tags"))
        return jsonify(thread=thread)

    @api.post("/threads/<thread_id>/like")
    def like_thread(thread_id):
        result = service.like_thread(thread_id, _body().get("userId"))
        return jsonify(ok=True, **result)

    @api.post("/threads/<thread_id>/view")
    def view_thread(thread_id):
        result = service.view_thread(thread_id)
        return jsonify(ok=True, **result)

    @api.post("/attachments/request")
    def request_attachment():
        data = _body()
        attachment = service.request_attachment(
            data.get("threadId"),
            data.get("postId"),
            data.get("requesterId"),
            data.get("file")
        )
        return jsonify(attachment=attachment)

    @api.post("/verify/request")
    def request_verification():
        data = _body()
        verification = service.request_verification(data.get("requesterId"), data.get("file"))
        return jsonify(request=verification)

    @api.get("/verify/status")
    def verification_status():
        return jsonify(service.verification_status(request.args.get("userId", "")))

    # === Admin ===

    @api.post("/admin/login")
    def admin_login():
        return jsonify(admin.login(str(_body().get("password") or "")))

    @api.get("/admin/threads")
    def admin_threads():
        return jsonify(threads=admin.list_threads(_admin_token()))

    @api.post("/admin/threads/<thread_id>/hidden")
    def admin_hide(thread_id):
        token = _admin_token()
        board.tokens.require(token)
        hidden = _parse_bool(_body().get("hidden"), default=True)
        return jsonify(thread=admin.set_hidden(token, thread_id, hidden))

    @api.delete("/admin/threads/<thread_id>")
    def admin_delete_thread(thread_id):
        return jsonify(admin.delete_thread(_admin_token(), thread_id))

    @api.delete("/admin/threads/<thread_id>/posts/<post_id>")
    def admin_delete_post(thread_id, post_id):
        return jsonify(admin.delete_post(_admin_token(), thread_id, post_id))

    @api.get("/admin/attachments")
    def admin_attachments():
        attachments = admin.list_attachments(_admin_token(), request.args.get("status", "pending"))
        return jsonify(attachments=attachments)

    @api.post("/admin/attachments/review")
    def admin_review_attachment():
        token = _admin_token()
        data = _body()
        attachment = admin.review_attachment(
            token, data.get("attachmentId"), data.get("action"), data.get("note")
        )
        return jsonify(attachment=attachment)

    @api.get("/admin/verify-requests")
    def admin_verify_requests():
        requests = admin.list_verification_requests(
            _admin_token(), request.args.get("status", "pending")
        )
        return jsonify(requests=requests)

    @api.post("/admin/verify-requests/review")
    def admin_review_verification():
        token = _admin_token()
        data = _body()
        reviewed = admin.review_verification(
            token, data.get("requestId"), data.get("action"), data.get("note")
        )
        return jsonify(request=reviewed)

    @api.get("/admin/stats")
    def admin_stats():
        board.tokens.require(_admin_token())
        return jsonify(board.get_stats())

    app.register_blueprint(api)

    @app.get("/healthz")
    def healthz():
        return "ok", 200, {"Content-Type": "text/plain"}

    # === Errors ===

    @app.errorhandler(BoardError)
    def handle_board_error(e: BoardError):
        response = jsonify(error=e.code)
        response.status_code = e.status
        if isinstance(e, RateLimited):
            response.headers["Retry-After"] = str(max(1, math.ceil(e.retry_after)))
        if e.status >= 500:
            logger.error(f"{request.method} {request.path}: {e}")
        else:
            logger.debug(f"{request.method} {request.path}: {e.code} ({e})")
        return response

    @app.errorhandler(HTTPException)
    def handle_http_error(e: HTTPException):
        codes = {404: "not_found", 405: "method_not_allowed", 413: "too_large"}
        response = jsonify(error=codes.get(e.code, "bad_request"))
        response.status_code = e.code or 400
        return response

    return app
