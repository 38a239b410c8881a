# univote/authentication/accounts.py

# Account lifecycle: registration, credential checks, profile edits and the
# ban / role toggles governed by the RBAC lattice.

import logging

from univote.authentication.rbac import TOGGLEABLE_ROLES, UserRole, check_user_action
from univote.database.models import find_by_id, new_id, sanitize_user, utc_iso
from univote.encryption.password_hashing import PasswordHashingService
from univote.errors import AuthError, ConflictError, ForbiddenError, NotFoundError, ValidationError
from univote.security.input_validator import InputValidator

logger = logging.getLogger(__name__)


def _matches(value, target) -> bool:
    return bool(value) and value.strip().lower() == target


def find_user_by_identifier(users, identifier):
    """Match a username or email, case-insensitively."""
    target = (identifier or "").strip().lower()
    if not target:
        return None
    return next((u for u in users if _matches(u.get("username"), target) or _matches(u.get("email"), target)), None)


class AccountService:
    def __init__(self, user_store, audit_logger, password_service=None, validator=None):
        self.user_store = user_store
        self.audit = audit_logger
        self.passwords = password_service or PasswordHashingService()
        self.validator = validator or InputValidator()

    def find_user(self, user_id):
        if not user_id:
            return None
        return find_by_id(self.user_store.load(), user_id)

    def list_users(self) -> list:
        return [
            {
                "id": u["id"],
                "username": u.get("username"),
                "email": u.get("email"),
                "roles": u["roles"],
                "department": u.get("department"),
                "year": u.get("year"),
                "studentId": u.get("studentId"),
                "banned": u["banned"],
                "createdAt": u.get("createdAt"),
            }
            for u in self.user_store.load()
        ]

    def sign_up(self, payload, roles=None) -> dict:
        username = payload.get("username")
        email = payload.get("email")
        password = payload.get("password")
        if not username or not email or not password:
            raise ValidationError("Username, email, and password are required.")
        department = self.validator.required_text(payload, "department", "Department is required.", 64)
        student_id = self.validator.required_text(payload, "studentId", "Student ID is required.", 64)
        username = username.strip() if isinstance(username, str) else username
        email = email.strip() if isinstance(email, str) else email
        if not self.validator.validate_username(username):
            raise ValidationError("Username must be 3-32 letters, digits, dots, dashes or underscores.")
        if not self.validator.validate_email(email):
            raise ValidationError("A valid email address is required.")
        year = payload.get("year")
        year = str(year).strip() if year not in (None, "") else None

        password_hash = self.passwords.hash_password(password)
        timestamp = utc_iso()
        user = {
            "id": new_id(),
            "username": username,
            "email": email,
            "passwordHash": password_hash,
            "department": department,
            "year": year,
            "studentId": student_id,
            "roles": list(roles or [UserRole.VOTER.value]),
            "banned": False,
            "createdAt": timestamp,
            "updatedAt": timestamp,
        }

        with self.user_store.transaction() as users:
            if find_user_by_identifier(users, username) or find_user_by_identifier(users, email):
                raise ConflictError("An account with that username or email already exists.")
            if any(_matches(u.get("studentId"), student_id.lower()) for u in users):
                raise ConflictError("This student ID is already registered.")
            users.append(user)

        logger.info("Registered user %s (%s)", user["id"], username)
        self.audit.log_event("user_registered", {"username": username, "roles": user["roles"]}, user["id"])
        return sanitize_user(user)

    def sign_in(self, identifier, password) -> dict:
        if not identifier or not password:
            raise ValidationError("Identifier and password are required.")
        user = find_user_by_identifier(self.user_store.load(), identifier)
        if user is None or not self.passwords.verify_password(password, user.get("passwordHash")):
            self.audit.log_event("failed_login", {"identifier": str(identifier)[:64]})
            raise AuthError("Invalid credentials.")
        if user["banned"]:
            self.audit.log_event("banned_login_attempt", {}, user["id"])
            raise ForbiddenError("Account is banned. Contact administration.")
        if self.passwords.needs_rehash(user["passwordHash"]):
            self._rehash(user["id"], password)
        self.audit.log_event("successful_login", {"roles": user["roles"]}, user["id"])
        return sanitize_user(user)

    def _rehash(self, user_id, password) -> None:
        # Argon2 parameters changed since this hash was made
        with self.user_store.transaction() as users:
            user = find_by_id(users, user_id)
            if user is not None:
                user["passwordHash"] = self.passwords.ph.hash(password)
        logger.info("Upgraded password hash for user %s", user_id)

    def update_profile(self, user_id, payload) -> dict:
        email = payload.get("email")
        current_password = payload.get("currentPassword")
        new_password = payload.get("newPassword")

        with self.user_store.transaction() as users:
            user = find_by_id(users, user_id)
            if user is None:
                raise NotFoundError("User not found.")
            updated = []

            if isinstance(email, str) and email.strip() and email.strip() != user.get("email"):
                email = email.strip()
                if not self.validator.validate_email(email):
                    raise ValidationError("A valid email address is required.")
                if any(u["id"] != user_id and _matches(u.get("email"), email.lower()) for u in users):
                    raise ConflictError("This email is already in use.")
                user["email"] = email
                updated.append("email")

            if new_password:
                if not current_password:
                    raise ValidationError("Current password is required to set a new password.")
                if not self.passwords.verify_password(current_password, user.get("passwordHash")):
                    raise AuthError("Current password is incorrect.")
                user["passwordHash"] = self.passwords.hash_password(new_password)
                updated.append("password")

            if updated:
                user["updatedAt"] = utc_iso()
            profile = sanitize_user(user)

        if updated:
            self.audit.log_event("profile_updated", {"fields": updated}, user_id)
            return {"message": "Profile updated successfully.", "profile": profile}
        return {"message": "No changes made.", "profile": profile}

    def toggle_ban(self, actor, target_id) -> dict:
        if target_id == actor["id"]:
            raise ValidationError("You cannot ban yourself.")
        with self.user_store.transaction() as users:
            target = find_by_id(users, target_id)
            if target is None:
                raise NotFoundError("User not found.")
            decision = check_user_action(actor["roles"], target["roles"], "ban")
            if not decision.allowed:
                raise ForbiddenError(decision.reason)
            target["banned"] = not target["banned"]
            target["updatedAt"] = utc_iso()
            banned = target["banned"]

        logger.info("User %s %s by %s", target_id, "banned" if banned else "unbanned", actor["id"])
        self.audit.log_event("user_banned" if banned else "user_unbanned", {"target_id": target_id}, actor["id"])
        return {"message": "User banned." if banned else "User unbanned.", "user": {"id": target_id, "banned": banned}}

    def toggle_role(self, actor, target_id, role) -> dict:
        if not role:
            raise ValidationError("Role is required.")
        role = str(role).strip().lower()
        if role not in TOGGLEABLE_ROLES:
            raise ValidationError(f"Role must be one of: {', '.join(TOGGLEABLE_ROLES)}")
        if target_id == actor["id"]:
            raise ValidationError("You cannot modify your own roles.")

        with self.user_store.transaction() as users:
            target = find_by_id(users, target_id)
            if target is None:
                raise NotFoundError("User not found.")
            decision = check_user_action(actor["roles"], target["roles"], "toggle_role", role=role)
            if not decision.allowed:
                raise ForbiddenError(decision.reason)
            if role in target["roles"]:
                target["roles"] = [r for r in target["roles"] if r != role]
                granted = False
            else:
                target["roles"] = target["roles"] + [role]
                granted = True
            target["updatedAt"] = utc_iso()
            roles = list(target["roles"])

        self.audit.log_event("role_granted" if granted else "role_revoked", {"target_id": target_id, "role": role}, actor["id"])
        return {"message": "User roles updated.", "user": {"id": target_id, "roles": roles}}
