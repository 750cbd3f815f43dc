class ClarityError(Exception):
    """Base error for the messaging service. `msg` is safe to show to clients."""

    status_code = 500

    def __init__(self, msg: str):
        super().__init__(msg)
        self.msg = msg


class ValidationError(ClarityError):
    status_code = 400


class ForbiddenError(ClarityError):
    status_code = 403


class NotFoundError(ClarityError):
    """Raised for missing messages and for messages owned by another tenant."""
    status_code = 404


class ServerError(ClarityError):
    status_code = 500

    def __init__(self, msg: str = "Server Error"):
        super().__init__(msg)
