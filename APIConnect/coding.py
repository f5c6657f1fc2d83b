"""JSON coders used for request bodies, query parameters and response decoding.

The coders follow a two step model: values are turned into an untyped JSON
tree (dicts, lists and scalars) and the tree is serialised with `json`, or the
reverse on the way in, where msgspec structures the tree into a target type.
"""

import dataclasses
import json
import typing
from enum import Enum
from typing import Any, Generic, Sequence, Tuple, TypeVar

import msgspec

from .exceptions import CodingError
from .utils import camel_to_snake, convert_keys, snake_to_camel

T = TypeVar("T")


class KeyEncodingStrategy(Enum):
    USE_DEFAULT_KEYS = "use_default_keys"
    CONVERT_TO_CAMEL_CASE = "convert_to_camel_case"


class KeyDecodingStrategy(Enum):
    USE_DEFAULT_KEYS = "use_default_keys"
    CONVERT_FROM_CAMEL_CASE = "convert_from_camel_case"


@dataclasses.dataclass(frozen=True)
class Empty:
    """Marker for requests and responses that carry no body."""

    data = b""


@dataclasses.dataclass(frozen=True)
class Unwrap(Generic[T]):
    """A single value extracted from a keyed envelope such as `{"widget": {...}}`.

    Used as `Unwrap[Widget]` to declare that a response should be unwrapped.
    """

    value: T


class TypeMismatch(ValueError):
    """Raised when a decoded JSON tree does not match the requested type."""

    def __init__(self, message: str, path: Sequence[Any] = ()):
        self.message = message
        self.path = tuple(path)
        super().__init__(f"{message} Path: {', '.join(str(p) for p in self.path)}")


def is_unwrap(target: Any) -> bool:
    return typing.get_origin(target) is Unwrap


def unwrap_argument(target: Any) -> Any:
    args = typing.get_args(target)
    return args[0] if args else Any


# Encoding
class JSONEncoder:
    """Turns Python values into JSON bytes."""

    content_type = "application/json"

    def __init__(self, key_encoding_strategy: KeyEncodingStrategy = KeyEncodingStrategy.USE_DEFAULT_KEYS,
                 sort_keys: bool = False):
        self.key_encoding_strategy = key_encoding_strategy
        self.sort_keys = sort_keys

    def to_tree(self, value: Any) -> Any:
        """Convert `value` to an untyped tree of dicts, lists and scalars."""
        try:
            tree = msgspec.to_builtins(value, str_keys=True, enc_hook=_enc_hook)
        except (TypeError, ValueError, msgspec.MsgspecError) as exc:
            raise CodingError(str(exc)) from exc
        if self.key_encoding_strategy is KeyEncodingStrategy.CONVERT_TO_CAMEL_CASE:
            tree = convert_keys(tree, snake_to_camel)
        return tree

    def encode(self, value: Any) -> bytes:
        tree = self.to_tree(value)
        try:
            return json.dumps(tree, allow_nan=False, sort_keys=self.sort_keys,
                              separators=(",", ":")).encode("utf-8")
        except (TypeError, ValueError) as exc:
            raise CodingError(str(exc)) from exc


def _enc_hook(value: Any) -> Any:
    # Objects outside msgspec's builtin set may describe themselves with to_dict().
    if hasattr(value, "to_dict"):
        return value.to_dict()
    raise NotImplementedError(f"Cannot encode value of type {type(value).__name__}")


# Decoding
class JSONDecoder:
    """Turns JSON bytes into instances of a target type."""

    def __init__(self, key_decoding_strategy: KeyDecodingStrategy = KeyDecodingStrategy.USE_DEFAULT_KEYS):
        self.key_decoding_strategy = key_decoding_strategy

    def parse(self, data: bytes) -> Any:
        """Deserialise `data` into an untyped tree with the key strategy applied."""
        tree = json.loads(data)
        if self.key_decoding_strategy is KeyDecodingStrategy.CONVERT_FROM_CAMEL_CASE:
            tree = convert_keys(tree, camel_to_snake)
        return tree

    def decode(self, data: bytes, target: Any) -> Any:
        """Decode `data` into `target`.

        Raises `ValueError` (including `json.JSONDecodeError` and `TypeMismatch`)
        when the bytes are not valid JSON or do not fit the target.
        """
        if target is bytes:
            return data
        if target is Empty:
            return Empty()
        return self.structure(self.parse(data), target)

    def structure(self, value: Any, target: Any, path: Tuple[Any, ...] = ()) -> Any:
        """Structure an untyped tree into `target` with msgspec's strict conversion."""
        if is_unwrap(target):
            return Unwrap(self.structure(value, unwrap_argument(target), path))
        if target is Empty:
            return Empty()
        if isinstance(target, type) and not dataclasses.is_dataclass(target) and hasattr(target, "from_dict"):
            if not isinstance(value, dict):
                raise TypeMismatch(f"Expected `object` for {target.__name__}, got `{type(value).__name__}`.", path)
            return target.from_dict(value)
        try:
            return msgspec.convert(value, type=target)
        except msgspec.ValidationError as exc:
            raise TypeMismatch(str(exc), path) from exc
