"""
API error types and their JSON rendering.

Every error leaves the service as {"success": false, "error": "<message>"}
with the status code carried by the exception class.
"""

import logging
from typing import Optional, Tuple

from flask import Flask, Response, jsonify
from werkzeug.exceptions import HTTPException


class ApiError(Exception):
    """Base class for errors that map directly onto an HTTP response."""

    status_code = 500
    message = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.message)
        if message:
            self.message = message

    def to_response(self) -> Tuple[Response, int]:
        return jsonify({"success": False, "error": self.message}), self.status_code


class ValidationError(ApiError):
    status_code = 400
    message = "Invalid request"


class ConflictError(ApiError):
    status_code = 400
    message = "Resource already exists"


class Unauthorized(ApiError):
    status_code = 401
    message = "Authentication required"


class MissingToken(Unauthorized):
    message = "Access token required"


class Forbidden(ApiError):
    status_code = 403
    message = "Access denied"


class InvalidOrExpiredToken(Forbidden):
    message = "Invalid token"


class NotFound(ApiError):
    status_code = 404
    message = "Not found"


class NotFoundOrForbidden(NotFound):
    message = "Not found or access denied"


class InternalError(ApiError):
    status_code = 500
    message = "Internal server error"


def register_error_handlers(app: Flask) -> None:
    """Install JSON error handlers on the app."""

    @app.errorhandler(ApiError)
    def handle_api_error(error: ApiError) -> Tuple[Response, int]:
        if error.status_code >= 500:
            logging.error(f"[Gateway] {type(error).__name__}: {error.message}")
        return error.to_response()

    @app.errorhandler(HTTPException)
    def handle_http_exception(error: HTTPException) -> Tuple[Response, int]:
        return jsonify({"success": False, "error": error.description}), error.code

    @app.errorhandler(Exception)
    def handle_unexpected(error: Exception) -> Tuple[Response, int]:
        logging.exception(f"[Gateway] Unhandled error: {error}")
        return InternalError().to_response()
