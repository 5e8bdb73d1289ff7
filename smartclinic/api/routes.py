"""
Flask route handlers for the REST API.
"""

import json
import sys
import traceback
from datetime import timedelta

from flask import jsonify, request
from pydantic_core import to_jsonable_python

from smartclinic.config import TOKEN_EXPIRY_HOURS
from smartclinic.database import check_connection
from smartclinic.errors import ProcedureError, Unauthenticated, ValidationError
from smartclinic.models import CallContext, utcnow
from smartclinic.rbac import allowed_actions, load_user_by_api_key
from smartclinic.router import call
from smartclinic.api.auth import extract_token, generate_token, resolve_user


def _error(exc: ProcedureError):
    return jsonify({"success": False, "error": exc.to_dict()}), exc.status


def register_routes(app, engine, sessions, router):
    """Register all API routes on the Flask *app*."""

    # ── Health / info ────────────────────────────────────────────────

    @app.route("/", methods=["GET"])
    def index():
        return jsonify({
            "service": "SmartClinic API",
            "version": "1.0.0",
            "status": "running",
            "procedures": len(router),
            "endpoints": {
                "login": "/api/auth/login",
                "logout": "/api/auth/logout",
                "profile": "/api/user/profile",
                "rpc": "/api/rpc/<procedure>",
                "health": "/health",
            },
        })

    @app.route("/health", methods=["GET"])
    def health():
        checks = {"database": check_connection(engine)}
        all_healthy = all(checks.values())
        return jsonify({
            "status": "healthy" if all_healthy else "unhealthy",
            "checks": checks,
            "active_sessions": len(sessions),
        }), 200 if all_healthy else 503

    # ── Auth ─────────────────────────────────────────────────────────

    @app.route("/api/auth/login", methods=["POST"])
    def login():
        if not request.is_json:
            return _error(ValidationError("Content-Type must be application/json"))

        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            return _error(ValidationError("Request body must be a JSON object"))
        api_key = data.get("api_key")
        if not isinstance(api_key, str) or not api_key.strip():
            return _error(ValidationError("api_key is required"))

        try:
            user = load_user_by_api_key(engine, api_key.strip())
        except ValueError as e:
            return _error(Unauthenticated(f"Authentication failed: {e}"))

        sessions.cleanup_expired()
        token = generate_token(user)
        sessions.add(token, user)
        print(f"[auth] {user.role} {user.email} logged in")

        return jsonify({
            "success": True,
            "token": token,
            "user": user.to_dict(),
            "permissions": allowed_actions(user.role),
            "expires_at": (utcnow() + timedelta(hours=TOKEN_EXPIRY_HOURS)).isoformat(),
        }), 200

    @app.route("/api/auth/logout", methods=["POST"])
    def logout():
        token = extract_token(request)
        if not token or not sessions.remove(token):
            return _error(Unauthenticated())
        return jsonify({"success": True, "message": "Logged out successfully"}), 200

    @app.route("/api/user/profile", methods=["GET"])
    def get_profile():
        user = resolve_user(engine, sessions, request)
        if user is None:
            return _error(Unauthenticated())

        session_data = sessions.get(extract_token(request))
        return jsonify({
            "success": True,
            "user": user.to_dict(),
            "permissions": allowed_actions(user.role),
            "session": {
                "created_at": session_data["created_at"].isoformat(),
                "last_activity": session_data["last_activity"].isoformat(),
            },
        }), 200

    # ── Procedures ───────────────────────────────────────────────────

    @app.route("/api/rpc/<procedure>", methods=["GET", "POST"])
    def rpc(procedure):
        try:
            if request.method == "GET":
                kind = "query"
                raw = request.args.get("input")
                try:
                    payload = json.loads(raw) if raw else None
                except json.JSONDecodeError:
                    raise ValidationError("Query parameter 'input' is not valid JSON")
            else:
                kind = None
                payload = request.get_json(silent=True)

            ctx = CallContext(engine=engine, user=resolve_user(engine, sessions, request))
            result = call(router, ctx, procedure, payload, kind=kind)
            return jsonify({"success": True, "data": to_jsonable_python(result)}), 200

        except ProcedureError as e:
            print(f"[rpc] {procedure} -> {e.code}: {e.message}", file=sys.stderr)
            return _error(e)
        except Exception as e:
            print(f"[ERROR] Procedure {procedure} failed: {e}", file=sys.stderr)
            traceback.print_exc()
            return _error(ProcedureError())

    # ── Error handlers ───────────────────────────────────────────────

    @app.errorhandler(404)
    def not_found(e):
        return jsonify({"error": "Endpoint not found", "message": str(e)}), 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return jsonify({"error": "Method not allowed", "message": str(e)}), 405
