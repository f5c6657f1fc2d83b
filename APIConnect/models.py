import http
import json
import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Container, Iterable, List, Optional, Union

from .coding import JSONEncoder
from .exceptions import CodingError, InvalidStatusCode
from .headers import HeaderPairs, HTTPHeaders
from .path import (
    ComponentLike,
    PathBuilder,
    PathComponent,
    parameters,
    path_components,
    paths,
    query_components,
    render,
    to_component,
)
from .query import ArrayEncoding, BoolEncoding, QueryEncoding
from .uri import URI

SUCCESS_STATUS_CODES = range(200, 300)


# Methods
class HasBody(Enum):
    YES = "yes"
    NO = "no"
    UNLIKELY = "unlikely"


@dataclass(frozen=True)
class HTTPMethod:
    """An HTTP method. Custom methods are upper-cased."""
    value: str

    def __post_init__(self):
        object.__setattr__(self, "value", self.value.upper())

    @classmethod
    def of(cls, method: Union["HTTPMethod", str]) -> "HTTPMethod":
        return method if isinstance(method, HTTPMethod) else cls(method)

    @property
    def has_request_body(self) -> HasBody:
        if self.value in ("POST", "PUT", "PATCH"):
            return HasBody.YES
        return HasBody.UNLIKELY

    def __str__(self) -> str:
        return self.value


HTTPMethod.GET = HTTPMethod("GET")
HTTPMethod.POST = HTTPMethod("POST")
HTTPMethod.PUT = HTTPMethod("PUT")
HTTPMethod.PATCH = HTTPMethod("PATCH")
HTTPMethod.DELETE = HTTPMethod("DELETE")


# Bodies
class HTTPBody:
    """Base class for request bodies.

    `additional_headers` are the headers a body implies, such as its content
    type; they are merged into the request whenever the body is set.
    """

    @property
    def is_empty(self) -> bool:
        return False

    @property
    def additional_headers(self) -> HTTPHeaders:
        return HTTPHeaders()

    def encode(self) -> bytes:
        raise NotImplementedError


class EmptyBody(HTTPBody):
    """No body at all."""

    @property
    def is_empty(self) -> bool:
        return True

    def encode(self) -> bytes:
        return b""

    def __repr__(self) -> str:
        return "EmptyBody()"


class DataBody(HTTPBody):
    """Raw bytes sent as is."""

    def __init__(self, data: bytes, additional_headers: Optional[HeaderPairs] = None):
        self.data = bytes(data)
        self._additional_headers = HTTPHeaders(additional_headers)

    @property
    def is_empty(self) -> bool:
        return not self.data

    @property
    def additional_headers(self) -> HTTPHeaders:
        return self._additional_headers.copy()

    def encode(self) -> bytes:
        return self.data

    def __repr__(self) -> str:
        return f"DataBody({len(self.data)} bytes)"


class JSONBody(HTTPBody):
    """A value serialised with a JSONEncoder when the request is sent.

    Without an explicit encoder, the sending client's configured encoder is
    used, falling back to a default JSONEncoder.
    """

    def __init__(self, value: Any, additional_headers: Optional[HeaderPairs] = None,
                 encoder: Optional[JSONEncoder] = None):
        self.value = value
        self._encoder = encoder
        if additional_headers is None:
            additional_headers = [("Content-Type", self.encoder.content_type)]
        self._additional_headers = HTTPHeaders(additional_headers)

    @property
    def encoder(self) -> JSONEncoder:
        return self._encoder or JSONEncoder()

    @property
    def has_encoder(self) -> bool:
        return self._encoder is not None

    def with_encoder(self, encoder: JSONEncoder) -> "JSONBody":
        return JSONBody(self.value, self._additional_headers, encoder)

    @property
    def additional_headers(self) -> HTTPHeaders:
        return self._additional_headers.copy()

    def encode(self) -> bytes:
        return self.encoder.encode(self.value)

    def __repr__(self) -> str:
        return f"JSONBody({self.value!r})"


# Request/Response Models
@dataclass(frozen=True, eq=False)
class HTTPRequest:
    """An immutable HTTP request.

    Every `with_*`/`add_*` method returns a new request with a fresh `id`.
    `id` only tells otherwise identical requests apart; it takes no part in
    equality or hashing.
    `headers` is read-only; the header builders work on a copy.
    """
    method: HTTPMethod = HTTPMethod.GET
    uri: URI = field(default_factory=URI)
    headers: HTTPHeaders = field(default_factory=HTTPHeaders)
    body: HTTPBody = field(default_factory=EmptyBody)
    timeout: Optional[float] = None
    id: uuid.UUID = field(default_factory=uuid.uuid4)

    def __post_init__(self):
        object.__setattr__(self, "method", HTTPMethod.of(self.method))
        if isinstance(self.uri, str):
            object.__setattr__(self, "uri", URI(self.uri))
        object.__setattr__(self, "headers", HTTPHeaders(self.headers).freeze())

    @classmethod
    def from_url(cls, url: str, method: Union[HTTPMethod, str] = HTTPMethod.GET) -> "HTTPRequest":
        return cls(method=HTTPMethod.of(method), uri=URI(url))

    def _copy(self, **changes: Any) -> "HTTPRequest":
        return replace(self, id=uuid.uuid4(), **changes)

    # Accessors
    @property
    def string(self) -> str:
        return self.uri.string

    @property
    def scheme(self) -> Optional[str]:
        return self.uri.scheme

    @property
    def host(self) -> Optional[str]:
        return self.uri.host

    @property
    def port(self) -> Optional[int]:
        return self.uri.port

    @property
    def path(self) -> List[PathComponent]:
        return path_components(self.uri.path)

    @property
    def query(self) -> List[PathComponent]:
        return query_components(self.uri.query or "")

    # Builders
    def with_url(self, url: str) -> "HTTPRequest":
        return self._copy(uri=URI(url))

    def with_scheme(self, scheme: Optional[str]) -> "HTTPRequest":
        return self._copy(uri=self.uri.replace(scheme=scheme))

    def with_host(self, host: Optional[str]) -> "HTTPRequest":
        return self._copy(uri=self.uri.replace(host=host))

    def with_port(self, port: Optional[int]) -> "HTTPRequest":
        return self._copy(uri=self.uri.replace(port=port))

    def with_method(self, method: Union[HTTPMethod, str]) -> "HTTPRequest":
        return self._copy(method=HTTPMethod.of(method))

    def with_path(self, path: Union[str, PathBuilder, Iterable[ComponentLike]]) -> "HTTPRequest":
        """Replace the path; only Path components of `path` are kept."""
        components = _components(path)
        return self._copy(uri=self.uri.replace(path=render(paths(components))))

    def with_query(self, query: Union[str, PathBuilder, Iterable[ComponentLike]]) -> "HTTPRequest":
        """Replace the query; only Parameter components of `query` are kept.

        A string is read as a query string; anything before a `?` is ignored.
        """
        if isinstance(query, str):
            components = query_components(query.rpartition("?")[2])
        else:
            components = _components(query)
        return self._copy(uri=self.uri.replace(query=render(parameters(components)) or None))

    def add_query(self, value: Any, array_encoding: ArrayEncoding = ArrayEncoding.NO_BRACKETS,
                  bool_encoding: BoolEncoding = BoolEncoding.NUMERIC,
                  encoder: Optional[JSONEncoder] = None) -> "HTTPRequest":
        """Append the query-encoded form of a record-shaped `value`.

        Raises CodingError when `value` cannot be encoded.
        """
        encoding = QueryEncoding(array_encoding, bool_encoding, encoder)
        return self.with_query(self.query + encoding.encode(value))

    def with_body(self, body: Union[HTTPBody, bytes]) -> "HTTPRequest":
        if isinstance(body, (bytes, bytearray)):
            body = DataBody(body)
        headers = self.headers.copy()
        additional = body.additional_headers
        for name in dict.fromkeys(name.lower() for name in additional.names):
            headers.remove(name)
        headers.add_all(additional)
        return self._copy(body=body, headers=headers)

    def with_json(self, value: Any, encoder: Optional[JSONEncoder] = None) -> "HTTPRequest":
        return self.with_body(JSONBody(value, encoder=encoder))

    def add_headers(self, headers: HeaderPairs) -> "HTTPRequest":
        merged = self.headers.copy()
        merged.add_all(headers)
        return self._copy(headers=merged)

    def with_header(self, name: str, value: str) -> "HTTPRequest":
        headers = self.headers.copy()
        headers.replace_or_add(name, value)
        return self._copy(headers=headers)

    def without_header(self, name: str) -> "HTTPRequest":
        headers = self.headers.copy()
        headers.remove(name)
        return self._copy(headers=headers)

    def with_timeout(self, timeout: Optional[float]) -> "HTTPRequest":
        return self._copy(timeout=timeout)

    # Representations
    def encoded_body(self) -> Optional[bytes]:
        try:
            return self.body.encode()
        except CodingError:
            return None

    @property
    def curl(self) -> str:
        result = "curl -k "
        result += f"-X {self.method} \\\n"
        for name, value in self.headers:
            result += f'-H "{name}: {value}" \\\n'
        data = self.encoded_body()
        if data:
            try:
                text = data.decode("utf-8")
            except UnicodeDecodeError:
                text = ""
            if text:
                result += f"-d '{text}' \\\n"
        result += self.string
        return result

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, HTTPRequest):
            return NotImplemented
        lhs, rhs = self.encoded_body(), other.encoded_body()
        if lhs is None or rhs is None:
            return False
        return (self.method == other.method
                and self.headers == other.headers
                and lhs == rhs
                and self.uri.string == other.uri.string)

    def __hash__(self) -> int:
        return hash((self.method, self.headers, self.uri, self.encoded_body()))

    def __str__(self) -> str:
        return f"URL:\n  {self.string}\nMETHOD:\n  {self.method}\nHEADERS:\n  {self.headers!r}"


def _components(value: Union[str, PathBuilder, Iterable[ComponentLike]]) -> List[PathComponent]:
    if isinstance(value, str):
        return path_components(value)
    if isinstance(value, PathBuilder):
        return value.build()
    return [to_component(item) for item in value]


@dataclass(frozen=True, eq=False)
class HTTPResponse:
    """An HTTP response as returned by a transport."""
    request: HTTPRequest
    status_code: int
    headers: HTTPHeaders = field(default_factory=HTTPHeaders)
    body: bytes = b""
    elapsed: float = 0.0

    def __post_init__(self):
        object.__setattr__(self, "headers", HTTPHeaders(self.headers).freeze())
        object.__setattr__(self, "body", bytes(self.body or b""))

    @property
    def message(self) -> str:
        """Human readable status text."""
        try:
            return http.HTTPStatus(self.status_code).phrase.lower()
        except ValueError:
            return "unknown"

    @property
    def is_successful(self) -> bool:
        return self.status_code in SUCCESS_STATUS_CODES

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    def json(self) -> Any:
        return json.loads(self.body)

    # Filters
    def filter(self, status_codes: Container[int]) -> "HTTPResponse":
        """Return the response if its status code is in `status_codes`, e.g. `range(200, 300)`.

        Raises InvalidStatusCode otherwise.
        """
        if self.status_code not in status_codes:
            raise InvalidStatusCode(request=self.request, response=self)
        return self

    def filter_status_code(self, status_code: int) -> "HTTPResponse":
        return self.filter(range(status_code, status_code + 1))

    def filter_successful_status_codes(self) -> "HTTPResponse":
        return self.filter(SUCCESS_STATUS_CODES)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, HTTPResponse):
            return NotImplemented
        return (self.status_code == other.status_code
                and self.headers == other.headers
                and self.body == other.body)

    def __hash__(self) -> int:
        return hash((self.status_code, self.headers, self.body))

    def __str__(self) -> str:
        return f"Status Code: {self.status_code}, Data Length: {len(self.body)}"
