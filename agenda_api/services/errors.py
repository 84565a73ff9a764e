class AgendaError(Exception):
    error_code = "error"
    http_status = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(AgendaError):
    error_code = "validation_error"
    http_status = 400


class NotFoundError(AgendaError):
    error_code = "not_found"
    http_status = 404


class HoldNotFoundError(NotFoundError):
    error_code = "no_pending_hold"


class ConflictError(AgendaError):
    error_code = "conflict"
    http_status = 409


class HoldExpiredError(ConflictError):
    error_code = "hold_expired"


class StoreError(AgendaError):
    error_code = "store_error"
    http_status = 503
