import logging

from flask import jsonify
from werkzeug.exceptions import HTTPException

logger = logging.getLogger(__name__)


class ApiError(Exception):
    status_code = 500
    message = "Internal server error"

    def __init__(self, message=None, details=None):
        super().__init__(message or self.message)
        if message:
            self.message = message
        self.details = details

    def to_dict(self):
        body = {"message": self.message}
        if self.details:
            body["details"] = self.details
        return body


class Unauthenticated(ApiError):
    status_code = 401
    message = "Not authenticated"


class NotFound(ApiError):
    status_code = 404
    message = "Not found"


class BadRequest(ApiError):
    status_code = 400
    message = "Bad request"


class UpstreamFailure(ApiError):
    """A storage or persistence call failed; carries the diagnostic detail."""

    status_code = 500
    message = "Upstream failure"


def register_error_handlers(app):
    @app.errorhandler(ApiError)
    def handle_api_error(e):
        if e.status_code >= 500:
            logger.error(f"{e.message}: {e.details}")
        else:
            logger.debug(f"{e.status_code} {e.message}")
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        return jsonify({"message": e.description}), e.code
