# univote/authentication/rbac.py

# Role-based access control: endpoint permissions per role, plus the lattice that
# decides which accounts an actor may ban or re-role. Both are plain functions of
# role sets so they can be checked without a request context.

from enum import Enum
from functools import wraps
from typing import Iterable, NamedTuple, Optional

from flask_jwt_extended import current_user

from univote.errors import ForbiddenError


class UserRole(Enum):
    VOTER = "voter"
    INSPECTOR = "inspector"
    ADMIN = "admin"
    DEVELOPER = "developer"


class Permission(Enum):
    MANAGE_ELECTION = "manage_election"
    MANAGE_USERS = "manage_users"
    BAN_USERS = "ban_users"
    VIEW_AUDIT_LOG = "view_audit_log"
    VIEW_FULL_ACTIVITY = "view_full_activity"


# Role -> Permissions mapping
ROLE_PERMISSIONS = {
    UserRole.VOTER: [],
    UserRole.INSPECTOR: [
        Permission.BAN_USERS,
        Permission.VIEW_AUDIT_LOG,
    ],
    UserRole.ADMIN: [
        Permission.MANAGE_ELECTION,
        Permission.MANAGE_USERS,
        Permission.BAN_USERS,
        Permission.VIEW_AUDIT_LOG,
        Permission.VIEW_FULL_ACTIVITY,
    ],
    UserRole.DEVELOPER: [
        Permission.MANAGE_ELECTION,
        Permission.MANAGE_USERS,
        Permission.BAN_USERS,
        Permission.VIEW_AUDIT_LOG,
        Permission.VIEW_FULL_ACTIVITY,
    ],
}

DENIED_MESSAGES = {
    Permission.MANAGE_ELECTION: "Admin privileges required.",
    Permission.MANAGE_USERS: "Admin privileges required.",
    Permission.BAN_USERS: "Insufficient privileges.",
    Permission.VIEW_AUDIT_LOG: "Insufficient privileges.",
    Permission.VIEW_FULL_ACTIVITY: "Admin privileges required.",
}

TOGGLEABLE_ROLES = (UserRole.ADMIN.value, UserRole.INSPECTOR.value, UserRole.DEVELOPER.value)


def _parse_roles(roles: Optional[Iterable[str]]) -> set:
    parsed = set()
    for role in roles or []:
        try:
            parsed.add(UserRole(str(role).lower().strip()))
        except ValueError:
            continue
    return parsed


class RBACService:
    def has_permission(self, user_roles, permission):
        if isinstance(permission, str):
            permission = Permission(permission)
        return any(permission in ROLE_PERMISSIONS.get(role, []) for role in _parse_roles(user_roles))

    def get_permissions(self, user_roles):
        permissions = set()
        for role in _parse_roles(user_roles):
            permissions.update(ROLE_PERMISSIONS.get(role, []))
        return permissions


rbac_service = RBACService()


class Decision(NamedTuple):
    allowed: bool
    reason: str = ""


ALLOW = Decision(True)


def check_user_action(actor_roles, target_roles, action: str, role: Optional[str] = None) -> Decision:
    """Decide whether an actor may ``ban`` or ``toggle_role`` a target account.

    Nobody acts on a tier at or above their own, except developers, who may act
    on anyone. Self-targeting is rejected separately by the caller, which knows ids.
    """
    actor = _parse_roles(actor_roles)
    target = _parse_roles(target_roles)
    is_developer = UserRole.DEVELOPER in actor
    is_admin = UserRole.ADMIN in actor
    is_inspector = UserRole.INSPECTOR in actor
    target_privileged = bool(target & {UserRole.ADMIN, UserRole.DEVELOPER})

    if action == "ban":
        if is_developer:
            return ALLOW
        if is_admin:
            if target_privileged:
                return Decision(False, "Cannot ban a superior or peer admin.")
            return ALLOW
        if is_inspector:
            if target_privileged or UserRole.INSPECTOR in target:
                return Decision(False, "Inspectors cannot ban privileged users.")
            return ALLOW
        return Decision(False, "Insufficient privileges.")

    if action == "toggle_role":
        if not (is_admin or is_developer):
            return Decision(False, "Admin privileges required.")
        if role == UserRole.ADMIN.value and not is_developer:
            return Decision(False, "Only Developers can assign Admin role.")
        if role == UserRole.DEVELOPER.value and not is_developer:
            return Decision(False, "Only Developers can assign Developer role.")
        if UserRole.DEVELOPER in target and not is_developer:
            return Decision(False, "Cannot modify a Developer account.")
        if UserRole.ADMIN in target and not is_developer:
            return Decision(False, "Cannot modify a peer admin account.")
        return ALLOW

    return Decision(False, f"Unknown action: {action}")


# Decorator for required permission; place below @jwt_required() so current_user is loaded
def require_permission(permission):
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            if not rbac_service.has_permission(current_user.get("roles"), permission):
                raise ForbiddenError(DENIED_MESSAGES.get(permission, "Insufficient privileges."))
            return func(*args, **kwargs)
        return wrapper
    return decorator
