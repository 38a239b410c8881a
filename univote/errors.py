# univote/errors.py
"""Error taxonomy shared by the election engine, the account service and the HTTP layer.

Every error carries the message shown to the client and the HTTP status it maps to.
`register_error_handlers` renders them (and the framework's own errors) as
``{"message": ...}`` JSON bodies.
"""

import logging

from flask import jsonify, request
from werkzeug.exceptions import HTTPException

logger = logging.getLogger(__name__)


class UniVoteError(Exception):
    """Base class for errors returned to API callers."""

    status_code = 400

    def __init__(self, message: str = "Request failed", status_code: int = None, payload: dict = None):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.payload = payload or {}
        super().__init__(self.message)

    def to_dict(self) -> dict:
        body = dict(self.payload)
        body["message"] = self.message
        return body


class ValidationError(UniVoteError):
    """Missing or malformed input."""

    status_code = 400


class AuthError(UniVoteError):
    """Missing, invalid or expired credential."""

    status_code = 401


class ForbiddenError(UniVoteError):
    """Role, ownership or eligibility violation."""

    status_code = 403


class NotFoundError(UniVoteError):
    """Resource not found."""

    status_code = 404


class ConflictError(UniVoteError):
    """Duplicate account or ballot."""

    status_code = 409


class DoubleVoteError(ConflictError):
    """The voter already holds a ballot for the candidate's position."""

    status_code = 400


class VotingClosedError(ValidationError):
    """The voting window has passed; the election was moved to Ended as a side effect."""


class InternalError(UniVoteError):
    """I/O or unexpected failure."""

    status_code = 500


def register_error_handlers(app):
    @app.errorhandler(UniVoteError)
    def handle_univote_error(error):
        if error.status_code >= 500:
            logger.error("Request %s %s failed: %s", request.method, request.path, error.message)
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(404)
    def handle_not_found(error):
        return jsonify({"message": "Route not found.", "path": request.path, "method": request.method}), 404

    @app.errorhandler(429)
    def handle_rate_limited(error):
        return jsonify({"message": f"Too many requests: {error.description}"}), 429

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        return jsonify({"message": error.description}), error.code

    @app.errorhandler(Exception)
    def handle_unexpected(error):
        logger.exception("Unhandled error on %s %s", request.method, request.path)
        return jsonify({"message": "Internal server error."}), 500
