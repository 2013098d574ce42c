"""
Custom exceptions for webstack.
"""

from typing import Any, Dict


class WebStackError(Exception):
    """Base exception for all webstack errors."""
    pass


class ConfigurationError(WebStackError):
    """Raised when there's a configuration error."""
    pass


class ListenerError(WebStackError):
    """Raised when the server cannot open its listening socket."""
    pass


class WebsocketClosedError(WebStackError):
    """Raised when reading from a websocket that the peer has closed."""
    pass


class Error(WebStackError):
    """
    A client-visible error with an HTTP status code.

    Handlers raise (or return) these to report an error; the pipeline renders
    them as ``{"Code": ..., "Message": ...}``.
    """

    default_code = 500
    default_message = "Server Error"

    def __init__(self, code: int = None, message: str = None):
        self.code = code if code is not None else self.default_code
        self.message = message if message is not None else self.default_message
        super().__init__(f"{self.code}: {self.message}")

    def to_dict(self) -> Dict[str, Any]:
        return {"Code": self.code, "Message": self.message}

    def __eq__(self, other):
        if not isinstance(other, Error):
            return NotImplemented
        return self.code == other.code and self.message == other.message

    def __hash__(self):
        return hash((self.code, self.message))

    def __repr__(self):
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r})"

    @classmethod
    def bad_request(cls) -> "Error":
        return Error(400, "Bad Request")

    @classmethod
    def unauthorized(cls) -> "Error":
        return AuthError()

    @classmethod
    def forbidden(cls) -> "Error":
        return Error(403, "Forbidden")

    @classmethod
    def not_found(cls) -> "Error":
        return Error(404, "Not Found")

    @classmethod
    def method_not_allowed(cls) -> "Error":
        return Error(405, "Method Not Allowed")

    @classmethod
    def server_error(cls) -> "Error":
        return Error(500, "Server Error")


def validation_error(fmt: str, *args) -> Error:
    """Build a 400 error whose message is ``fmt % args``."""
    message = fmt % args if args else fmt
    return Error(400, message)


class AuthError(Error):
    """Raised when a caller has no identity on an authenticated route."""
    default_code = 401
    default_message = "Unauthorized"


class AdmissionError(Error):
    """Raised when a client is over its request rate."""
    default_code = 429
    default_message = "Too Many Requests"


class PayloadError(Error):
    """Raised when a request body is larger than the route allows."""
    default_code = 413
    default_message = "Request Entity Too Large"


class RangeError(Error):
    """Raised when a Range header cannot be satisfied."""
    default_code = 416
    default_message = "Requested Range Not Satisfiable"

    def __init__(self, total_length: int = 0, message: str = None):
        self.total_length = total_length
        super().__init__(message=message)


class HandlerFault(WebStackError):
    """Wraps an exception that escaped a request handler."""

    def __init__(self, route: str, method: str, original: BaseException):
        self.route = route
        self.method = method
        self.original = original
        super().__init__(f"{method} {route}: {original!r}")
