"""Custom exceptions for the POS application."""


class PosError(Exception):
    """Base exception for all application errors."""
    def __init__(self, message="An internal error occurred", status_code=500, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['message'] = self.message
        rv['status'] = 'error'
        return rv


class BusinessLogicError(PosError):
    """Exception raised for malformed requests against the POS endpoints."""
    def __init__(self, message, status_code=400, payload=None):
        super().__init__(message, status_code, payload)


class NotFoundError(PosError):
    """Exception raised when a resource is not found."""
    def __init__(self, message="Resource not found", payload=None):
        super().__init__(message, 404, payload)


class SalesApiError(PosError):
    """
    Raised by the Sales API client when the remote call fails.

    `status` is the HTTP status returned by the server, or None when no
    response was received (connection refused, timeout, invalid JSON).
    `errors` holds the field errors of a 400/422 response.
    """
    def __init__(self, message, status=None, errors=None, data=None):
        super().__init__(message, 502, {'remote_status': status})
        self.status = status
        self.errors = errors or {}
        self.data = data

    def field_messages(self):
        """Flatten field errors into a list of human readable messages."""
        messages = []
        for field, value in self.errors.items():
            if isinstance(value, (list, tuple)):
                messages.extend(str(v) for v in value)
            else:
                messages.append(str(value))
        return messages
