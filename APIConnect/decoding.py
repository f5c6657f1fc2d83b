"""Decode policies: how a response body becomes a typed value.

A policy is picked once, when a Request is built, from the shape of the
decoding contract:

* `RawDecode` decodes the body straight into the raw type.
* `UnwrapDecode` extracts one value from a keyed envelope, either by a known
  key or by requiring exactly one top-level key to decode.
* `FallbackDecode` uses another policy for 2xx responses and otherwise
  decodes an error type, raised as `FallbackDecodeError`.
"""

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Generic, Optional, TypeVar

from .coding import Empty, JSONDecoder, KeyDecodingStrategy, TypeMismatch, Unwrap, is_unwrap, unwrap_argument
from .exceptions import DecodingError, FallbackDecodeError, ResourceExtractionError, WrongUsage
from .models import SUCCESS_STATUS_CODES, HTTPRequest, HTTPResponse
from .utils import camel_to_snake

logger = logging.getLogger(__name__)

T = TypeVar("T")


class _AnyValue:
    """Opaque marker meaning "no fallback type declared"."""

    def __repr__(self) -> str:
        return "ANY"


ANY = _AnyValue()


def _type_name(target: Any) -> str:
    return getattr(target, "__name__", None) or repr(target)


# Policies
class DecodePolicy:
    def decode(self, response: HTTPResponse, decoder: JSONDecoder) -> Any:
        raise NotImplementedError


class RawDecode(DecodePolicy):
    """Decode the body into `raw_type`, then pass it through `finalize`."""

    def __init__(self, raw_type: Any, finalize: Optional[Callable[[Any], Any]] = None):
        self.raw_type = raw_type
        self.finalize = finalize

    def decode(self, response: HTTPResponse, decoder: JSONDecoder) -> Any:
        if self.raw_type is bytes:
            value = response.body
        else:
            data = Empty.data if self.raw_type is Empty else response.body
            try:
                value = decoder.decode(data, self.raw_type)
            except (ValueError, TypeError) as exc:
                raise DecodingError(exc, data=response.body) from exc
        return self.finalize(value) if self.finalize else value

    def __repr__(self) -> str:
        return f"RawDecode({_type_name(self.raw_type)})"


class UnwrapDecode(DecodePolicy):
    """Extract a single `final_type` value from an enveloping JSON object.

    With `unwrap_key` set, exactly that key is extracted. Without it every
    top-level value is tried and exactly one has to decode.
    """

    def __init__(self, final_type: Any, unwrap_key: str = "",
                 finalize: Optional[Callable[[Unwrap], Any]] = None):
        self.final_type = final_type
        self.unwrap_key = unwrap_key
        self.finalize = finalize

    def decode(self, response: HTTPResponse, decoder: JSONDecoder) -> Any:
        data = response.body
        try:
            tree = decoder.parse(data)
        except ValueError as exc:
            raise DecodingError(exc, data=data) from exc
        if not isinstance(tree, dict):
            error = TypeMismatch(f"Expected a keyed container to unwrap but found {type(tree).__name__}.")
            raise DecodingError(error, data=data)

        raw = Unwrap(self.extract(tree, decoder))
        return self.finalize(raw) if self.finalize else raw.value

    def extract(self, container: Dict[str, Any], decoder: JSONDecoder) -> Any:
        name = _type_name(self.final_type)
        if self.unwrap_key:
            key = self._resolve_key(container, decoder)
            if key is None:
                raise ResourceExtractionError(
                    f"Failed to unwrap type {name} from Unwrap response, "
                    f"couldn't find object with key {self.unwrap_key}.")
            try:
                return decoder.structure(container[key], self.final_type, (key,))
            except (ValueError, TypeError) as exc:
                raise ResourceExtractionError(
                    f"Failed to unwrap type {name} from Unwrap response. "
                    f"Couldn't decode object for key {self.unwrap_key}.") from exc

        decoded = []
        for key, value in container.items():
            try:
                decoded.append(decoder.structure(value, self.final_type, (key,)))
            except (ValueError, TypeError):
                logger.debug(f"Key {key!r} does not decode as {name}")

        if not decoded:
            raise ResourceExtractionError(
                f"Failed to unwrap type {name} from Unwrap response, couldn't decode any objects.")
        if len(decoded) != 1:
            raise ResourceExtractionError(
                f"Failed to unwrap type {name} from Unwrap response, decoded {len(decoded)} objects "
                "where only 1 was expected. Try setting an `unwrap_key` to specify a single object.")
        return decoded[0]

    def _resolve_key(self, container: Dict[str, Any], decoder: JSONDecoder) -> Optional[str]:
        if self.unwrap_key in container:
            return self.unwrap_key
        # Keys were renamed while parsing.
        if decoder.key_decoding_strategy is KeyDecodingStrategy.CONVERT_FROM_CAMEL_CASE:
            converted = camel_to_snake(self.unwrap_key)
            if converted in container:
                return converted
        return None

    def __repr__(self) -> str:
        return f"UnwrapDecode({_type_name(self.final_type)}, unwrap_key={self.unwrap_key!r})"


class FallbackDecode(DecodePolicy):
    """Use `success` for 2xx responses; otherwise decode `fallback_type` and raise it."""

    def __init__(self, fallback_type: Any, success: DecodePolicy):
        self.fallback_type = fallback_type
        self.success = success

    def decode(self, response: HTTPResponse, decoder: JSONDecoder) -> Any:
        if response.status_code in SUCCESS_STATUS_CODES:
            return self.success.decode(response, decoder)

        try:
            fallback = decoder.decode(response.body, self.fallback_type)
        except (ValueError, TypeError) as exc:
            raise DecodingError(exc, data=response.body) from exc
        raise FallbackDecodeError(fallback, request=response.request, response=response)

    def __repr__(self) -> str:
        return f"FallbackDecode({_type_name(self.fallback_type)}, success={self.success!r})"


# Typed requests
@dataclass(frozen=True, eq=False)
class Request(Generic[T]):
    """An HTTPRequest paired with the way its response is decoded.

    Either `decode_handler` (a plain closure) or `policy` must be given.
    """
    http_request: HTTPRequest
    decode_handler: Optional[Callable[[HTTPResponse], T]] = None
    policy: Optional[DecodePolicy] = None
    decoder: Optional[JSONDecoder] = None
    id: uuid.UUID = field(default_factory=uuid.uuid4)

    def __post_init__(self):
        if (self.decode_handler is None) == (self.policy is None):
            raise WrongUsage("A Request needs exactly one of decode_handler or policy")

    @classmethod
    def for_policy(cls, http_request: HTTPRequest, policy: DecodePolicy,
                   decoder: Optional[JSONDecoder] = None) -> "Request":
        return cls(http_request, policy=policy, decoder=decoder)

    @classmethod
    def raw(cls, http_request: HTTPRequest, raw_type: Any, fallback_type: Any = ANY,
            decoder: Optional[JSONDecoder] = None) -> "Request":
        return cls.for_policy(http_request, _with_fallback(RawDecode(raw_type), fallback_type), decoder)

    @classmethod
    def unwrap(cls, http_request: HTTPRequest, final_type: Any, unwrap_key: str = "",
               fallback_type: Any = ANY, decoder: Optional[JSONDecoder] = None) -> "Request":
        policy = _with_fallback(UnwrapDecode(final_type, unwrap_key), fallback_type)
        return cls.for_policy(http_request, policy, decoder)

    def decode(self, response: HTTPResponse, decoder: Optional[JSONDecoder] = None) -> T:
        """Decode `response`. The request's own decoder wins over `decoder`."""
        if self.decode_handler is not None:
            return self.decode_handler(response)
        return self.policy.decode(response, self.decoder or decoder or JSONDecoder())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Request):
            return NotImplemented
        return self.http_request == other.http_request and self.id == other.id

    def __hash__(self) -> int:
        return hash((self.http_request, self.id))


def _with_fallback(policy: DecodePolicy, fallback_type: Any) -> DecodePolicy:
    if fallback_type is ANY:
        return policy
    return FallbackDecode(fallback_type, policy)


# Decoding contracts
class ResponseDecodable:
    """Declares how a response is decoded.

    Subclasses set `raw_value` (the type the body decodes into, or
    `Unwrap[T]` for an envelope), optionally `fallback_value` (decoded from
    non-2xx bodies), `unwrap_key` and `decoder`, and may override `finalize`
    to turn the raw value into the final one.
    """
    raw_value: Any = None
    fallback_value: Any = ANY
    unwrap_key: str = ""
    decoder: Optional[JSONDecoder] = None

    @property
    def final_value(self) -> Any:
        if is_unwrap(self.raw_value):
            return unwrap_argument(self.raw_value)
        return self.raw_value

    def finalize(self, raw_value: Any) -> Any:
        if isinstance(raw_value, Unwrap):
            return raw_value.value
        return raw_value

    def policy(self) -> DecodePolicy:
        if self.raw_value is None:
            raise WrongUsage(f"{type(self).__name__} does not declare a raw_value")
        if is_unwrap(self.raw_value):
            success: DecodePolicy = UnwrapDecode(self.final_value, self.unwrap_key, finalize=self.finalize)
        else:
            success = RawDecode(self.raw_value, finalize=self.finalize)
        return _with_fallback(success, self.fallback_value)

    def decode(self, response: HTTPResponse, decoder: Optional[JSONDecoder] = None) -> Any:
        return self.policy().decode(response, self.decoder or decoder or JSONDecoder())


class RequestRepresentable:
    """Something that knows the HTTPRequest it is sent as."""

    @property
    def http_request(self) -> HTTPRequest:
        raise NotImplementedError

    def request(self) -> Request:
        if not isinstance(self, ResponseDecodable):
            raise WrongUsage(f"{type(self).__name__} must also be ResponseDecodable to build a Request")
        return Request.for_policy(self.http_request, self.policy(), self.decoder)
