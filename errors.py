"""
Service errors

Services raise one of these instead of returning error envelopes. The API
layer turns them into ``{"success": false, "error": ...}`` responses with the
matching status code.
"""

from typing import Any, Dict


class ServiceError(Exception):
    status_code = 500

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = context

    def to_dict(self) -> Dict[str, Any]:
        return {"success": False, "error": self.message, **self.context}


class NotFound(ServiceError):
    status_code = 404


class Conflict(ServiceError):
    status_code = 409


class ValidationFailed(ServiceError):
    status_code = 400


class UpstreamUnavailable(ServiceError):
    # media host by default; database failures are reported with 503
    status_code = 502
