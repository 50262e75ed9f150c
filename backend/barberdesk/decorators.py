# Overview: Request decorators for API routes (authentication, roles, tenant context).

from functools import wraps
from flask import request, jsonify, g

from .models import ROLE_SUPER_ADMIN
from .services import session_service
from .services.security_service import log_request_denial
from .services.tenant_service import (
    STATUS_PROVISIONING,
    TenantAccessError,
    get_resolver,
    require_unit_in_company,
)


def _bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1]


def _is_authenticated() -> bool:
    return hasattr(g, 'current_user') and hasattr(g, 'session_context')


def require_auth(f):
    """
    Require a valid bearer token.

    Sets the following Flask g attributes:
    - g.current_user: The authenticated User object
    - g.session_context: The full SessionContext object
    - g.session_token: The plaintext bearer token (for logout)

    SECURITY: Returns 401 if:
    - No Authorization header
    - Invalid, expired or revoked token
    - User account deactivated
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _bearer_token()
        if not token:
            return jsonify({"error": "Authentication required"}), 401

        context = session_service.validate_session(token)
        if not context:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.current_user = context.user
        g.session_context = context
        g.session_token = token

        return f(*args, **kwargs)

    return decorated_function


def require_super_admin(f):
    """Require the authenticated user to hold the super_admin role."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not _is_authenticated():
            return jsonify({"error": "Authentication required"}), 401
        if ROLE_SUPER_ADMIN not in g.current_user.role_names:
            log_request_denial("SUPER_ADMIN_REQUIRED", "Missing super_admin role")
            return jsonify({"error": "Super admin access required"}), 403
        return f(*args, **kwargs)
    return decorated_function


def require_tenant(f):
    """
    Resolve (and if needed provision) the caller's company and current unit.

    MULTI-TENANT: Sets the following Flask g attributes:
    - g.tenant: The TenantState of this session
    - g.company_id: The resolved company
    - g.unit_id: The session's current unit

    Returns 409 while another request of the same session is provisioning,
    503 when the tenant lookup failed (fail closed).
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not _is_authenticated():
            return jsonify({"error": "Authentication required"}), 401

        resolver = get_resolver(g.session_context.session_id)
        state = resolver.sync(g.current_user)

        if not state.is_resolved:
            if state.status == STATUS_PROVISIONING:
                return jsonify({"error": "Tenant provisioning in progress", "status": state.status}), 409
            return jsonify({"error": "Tenant could not be resolved", "status": state.status}), 503

        g.tenant = state
        g.company_id = state.company_id
        g.unit_id = state.current_unit_id

        return f(*args, **kwargs)

    return decorated_function


def scoped_unit_id(raw_unit_id=None) -> int:
    """
    Unit the request operates on: the explicit unit_id (checked against the
    caller's company) or the session's current unit.

    Raises TenantAccessError for units outside the company.
    """
    if raw_unit_id is None or raw_unit_id == "":
        return g.unit_id
    try:
        unit_id = int(raw_unit_id)
    except (TypeError, ValueError):
        raise TenantAccessError("Unit not found")
    if unit_id == g.unit_id or unit_id in {u.id for u in g.tenant.units}:
        return unit_id
    return require_unit_in_company(unit_id, g.company_id).id
