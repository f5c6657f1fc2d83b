from enum import Enum
from typing import Any, Optional


# Exceptions
class HTTPError(Exception):
    """Base exception for every error raised by APIConnect."""
    pass

class MissingURL(HTTPError):
    """Raised when a request cannot be turned into an absolute URL."""

    def __init__(self, message: str = "Missing URL."):
        super().__init__(message)

class WrongUsage(HTTPError):
    """Raised when the API is used in an unsupported way."""
    pass

class CodingError(HTTPError):
    """Something went wrong while encoding request parameters or a body."""

    def __init__(self, message: str):
        super().__init__(f"Coding error: {message}.")
        self.reason = message

class DecodingError(HTTPError):
    """Something went wrong while decoding the response."""

    def __init__(self, error: Exception, data: Optional[bytes] = None):
        super().__init__(f"Decoding Error: {error}.")
        self.error = error
        self.data = data

class ResourceExtractionError(HTTPError):
    """The raw result could not be turned into the final resource."""

    def __init__(self, message: str):
        super().__init__(
            "Resource Extraction Error: The raw result could not be turned "
            f"into the final resource: {message}"
        )
        self.reason = message

class NoResponse(HTTPError):
    """The transport finished without producing a response."""

    def __init__(self, message: str = "No response."):
        super().__init__(message)

class NoData(HTTPError):
    """The response carried no data where some was required."""

    def __init__(self, message: str = "No data."):
        super().__init__(message)

class NoInternetConnection(HTTPError):
    """Raised before dispatch when the reachability monitor reports offline."""

    def __init__(self, message: str = "Internet connection is not available"):
        super().__init__(message)


class NetworkErrorCode(Enum):
    """High-level classification of a NetworkError."""
    INVALID_STATUS_CODE = "invalid_status_code"
    FALLBACK_DECODE = "fallback_decode"
    UNKNOWN = "unknown"

    @property
    def description(self) -> str:
        return {
            NetworkErrorCode.INVALID_STATUS_CODE: "Status code didn't fall within the given range.",
            NetworkErrorCode.FALLBACK_DECODE: "Decoding to RawResource failed, but FallbackResource was successful.",
            NetworkErrorCode.UNKNOWN: "Unknown error.",
        }[self]

class NetworkError(HTTPError):
    """An error tied to a specific request/response exchange."""

    code = NetworkErrorCode.UNKNOWN

    def __init__(self, request: Any, response: Any, error: Optional[BaseException] = None,
                 code: Optional[NetworkErrorCode] = None):
        if code is not None:
            self.code = code
        super().__init__(self.code.description)
        self.request = request
        self.response = response
        self.underlying_error = error

    @property
    def status_code(self) -> Optional[int]:
        return getattr(self.response, "status_code", None)

class InvalidStatusCode(NetworkError):
    """Raised by response filters when the status code is not accepted."""
    code = NetworkErrorCode.INVALID_STATUS_CODE

class FallbackDecodeError(NetworkError):
    """Decoding to the raw value was skipped because the status signalled failure,
    but the body decoded into the fallback value, which is carried in `fallback`."""
    code = NetworkErrorCode.FALLBACK_DECODE

    def __init__(self, fallback: Any, request: Any, response: Any):
        super().__init__(request, response)
        self.fallback = fallback


# Transport adapter failures
class TransportError(HTTPError):
    """Base class for failures raised by the bundled http.client adapter."""
    pass

class TransportTimeoutError(TransportError):
    """Raised when the request times out."""
    pass

class TransportConnectionError(TransportError):
    """Raised when the connection fails."""
    pass
