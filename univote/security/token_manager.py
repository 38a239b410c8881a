# univote/security/token_manager.py
from datetime import timedelta

from flask import Flask, current_app, jsonify
from flask_jwt_extended import JWTManager, create_access_token


# Bearer JWTs carrying the user id; every protected request reloads the account
# from the user store so bans and role changes apply to tokens already issued.
class TokenManager:
    def __init__(self, jwt: JWTManager = None, app: Flask = None):
        self.jwt = jwt or JWTManager()
        if app:
            self.init_app(app)

    def init_app(self, app: Flask):
        app.config.setdefault("JWT_SECRET_KEY", "change_this_secret_key")
        app.config.setdefault("JWT_ACCESS_TOKEN_EXPIRES", timedelta(hours=24))
        app.config.setdefault("JWT_TOKEN_LOCATION", ["headers"])
        self.jwt.init_app(app)
        self._register_loaders()

    def _register_loaders(self):
        jwt = self.jwt

        @jwt.user_lookup_loader
        def load_user(jwt_header, jwt_payload):
            accounts = current_app.extensions["univote"]["accounts"]
            return accounts.find_user(jwt_payload["sub"])

        @jwt.user_lookup_error_loader
        def user_not_found(jwt_header, jwt_payload):
            return jsonify({"message": "User not found."}), 401

        @jwt.unauthorized_loader
        def missing_token(reason):
            return jsonify({"message": "Authentication required."}), 401

        @jwt.invalid_token_loader
        def invalid_token(reason):
            current_app.logger.warning("Token verification failed: %s", reason)
            return jsonify({"message": "Invalid or expired token."}), 401

        @jwt.expired_token_loader
        def expired_token(jwt_header, jwt_payload):
            return jsonify({"message": "Invalid or expired token."}), 401

    def generate_token(self, user: dict, expires_in: int = None) -> str:
        expires_delta = timedelta(seconds=expires_in) if expires_in else None
        claims = {
            "roles": user.get("roles", []),
            "username": user.get("username"),
            "email": user.get("email"),
        }
        return create_access_token(identity=user["id"], additional_claims=claims, expires_delta=expires_delta)
