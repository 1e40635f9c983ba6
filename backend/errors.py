"""
Error taxonomy shared by the services and the HTTP layer.

Services raise these before touching the store; the FastAPI app maps them
to status codes with a single exception handler.
"""


class CafeError(Exception):
    status_code = 500
    default_message = "Unexpected error"

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthorized(CafeError):
    status_code = 403
    default_message = "Not allowed"


class LoginRequired(Unauthorized):
    status_code = 401
    default_message = "Login required"


class ValidationError(CafeError):
    status_code = 400
    default_message = "Invalid request"


class NotFound(CafeError):
    status_code = 404
    default_message = "Not found"


class Conflict(CafeError):
    status_code = 409
    default_message = "Already exists"


class UpstreamFailure(CafeError):
    status_code = 500
    default_message = "Upstream service failed"
