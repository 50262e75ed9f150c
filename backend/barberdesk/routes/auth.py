# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

"""
Authentication API routes

SECURITY FEATURES:
- Password strength validation on signup
- Login throttling to prevent brute-force attacks
- Session management with token-based auth

Signup only creates the account. The company and first unit are provisioned
by the tenant resolver on the first tenant-scoped request.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import auth_service
from ..services import session_service
from ..services import login_throttle_service
from ..services.auth_service import AccountError, PasswordValidationError
from ..services.tenant_service import discard_resolver
from ..decorators import require_auth


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")

PROFILE_FIELDS = ("business_name", "full_name", "name", "phone")


@auth_bp.post("/signup")
def signup_route():
    try:
        data = request.get_json(silent=True) or {}
        email = data.get("email")
        password = data.get("password")

        if not all([email, password]):
            return jsonify({"error": "email and password required"}), 400

        profile = {k: data.get(k) for k in PROFILE_FIELDS if data.get(k) is not None}

        try:
            user = auth_service.create_user(email, password, profile=profile)
        except PasswordValidationError as e:
            return jsonify({"error": str(e)}), 400
        except AccountError as e:
            return jsonify({"error": str(e)}), 409

        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )

        return jsonify({
            "user": user.to_dict(),
            "token": token,
            "session": session.to_dict(),
        }), 201

    except Exception:
        current_app.logger.exception("Failed to sign up user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    SECURITY:
    - Checks for lockout before attempting authentication
    - Records failed attempts for throttling
    """
    try:
        data = request.get_json(silent=True) or {}
        email = data.get("email")
        password = data.get("password")

        if not all([email, password]):
            return jsonify({"error": "email and password required"}), 400

        user_agent = request.headers.get("User-Agent")
        ip_address = request.remote_addr

        is_locked, seconds_remaining = login_throttle_service.is_account_locked(email)
        if is_locked:
            return jsonify({
                "error": "Account temporarily locked due to too many failed login attempts",
                "locked": True,
                "retry_after_seconds": seconds_remaining,
            }), 429

        user = auth_service.authenticate(email, password)

        if not user:
            failed_count = login_throttle_service.record_failed_attempt(
                email,
                ip_address=ip_address,
                user_agent=user_agent,
            )
            remaining = login_throttle_service.MAX_FAILED_ATTEMPTS - failed_count
            if remaining <= 0:
                return jsonify({
                    "error": "Account locked due to too many failed login attempts",
                    "locked": True,
                }), 429
            return jsonify({"error": "Invalid credentials"}), 401

        login_throttle_service.record_successful_login(
            user_id=user.id,
            email=email,
            ip_address=ip_address,
            user_agent=user_agent,
        )

        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=user_agent,
            ip_address=ip_address,
        )

        return jsonify({
            "user": user.to_dict(),
            "token": token,
            "session": session.to_dict(),
            "message": "Login successful",
        }), 200

    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
@require_auth
def logout_route():
    """Revoke the session token and forget its tenant selection."""
    try:
        session = session_service.revoke_session(g.session_token, reason="User logout")
        if not session:
            return jsonify({"error": "Invalid or expired token"}), 401

        discard_resolver(session.id)
        return jsonify({"message": "Logout successful"}), 200

    except Exception:
        current_app.logger.exception("Failed to logout user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.get("/me")
@require_auth
def me_route():
    return jsonify({"user": g.current_user.to_dict()}), 200

