# Overview: JSON error bodies shared by the route modules.

from flask import jsonify, current_app

from .errors import PosError


def error_response(exc: PosError):
    """{"success": false, "error": ..., "details"?} with the error's status."""
    return jsonify(exc.to_dict()), exc.status_code


def internal_error_response(exc: Exception, message: str):
    """
    Log an unexpected failure and answer 500.

    The exception text reaches the client only when EXPOSE_ERROR_DETAILS
    is enabled (development).
    """
    current_app.logger.exception(message)
    body = {"success": False, "error": "Internal server error"}
    if current_app.config.get("EXPOSE_ERROR_DETAILS"):
        body["details"] = {"exception": f"{type(exc).__name__}: {exc}"}
    return jsonify(body), 500
