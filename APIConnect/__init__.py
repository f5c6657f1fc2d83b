"""APIConnect - structured HTTP requests, middleware and typed response decoding."""

# Import key classes for easier access
from .client import APIClient, Call, ProgressTable
from .coding import (
    Empty,
    JSONDecoder,
    JSONEncoder,
    KeyDecodingStrategy,
    KeyEncodingStrategy,
    TypeMismatch,
    Unwrap,
)
from .config import Configuration
from .decoding import (
    ANY,
    DecodePolicy,
    FallbackDecode,
    RawDecode,
    Request,
    RequestRepresentable,
    ResponseDecodable,
    UnwrapDecode,
)
from .exceptions import (
    CodingError,
    DecodingError,
    FallbackDecodeError,
    HTTPError,
    InvalidStatusCode,
    MissingURL,
    NetworkError,
    NetworkErrorCode,
    NoData,
    NoInternetConnection,
    NoResponse,
    ResourceExtractionError,
    TransportConnectionError,
    TransportError,
    TransportTimeoutError,
    WrongUsage,
)
from .headers import HTTPHeaders
from .middlewares import (
    AuthenticationMiddleware,
    BasicResponder,
    FunctionMiddleware,
    HeadersMiddleware,
    LoggingMiddleware,
    MetricsMiddleware,
    Middleware,
    Middlewares,
    Position,
    Responder,
    RetryConfig,
    RetryMiddleware,
    UserAgentMiddleware,
    make_responder,
)
from .models import (
    SUCCESS_STATUS_CODES,
    DataBody,
    EmptyBody,
    HasBody,
    HTTPBody,
    HTTPMethod,
    HTTPRequest,
    HTTPResponse,
    JSONBody,
)
from .path import Parameter, Path, PathBuilder, PathComponent, path_components, query_components, render
from .query import ArrayEncoding, BoolEncoding, QueryEncoding
from .reachability import Reachability, StaticReachability
from .transport import CallToken, HTTPClientTransport, ProgressEvents, Transport
from .uri import URI, Scheme

__version__ = "0.1.0"
