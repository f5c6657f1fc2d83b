from enum import Enum
from typing import Any, List, Optional, Tuple
from urllib.parse import quote

from .coding import JSONEncoder
from .exceptions import CodingError
from .path import Parameter

# RFC 3986 section 3.4: "?" and "/" may appear unescaped in a query; every
# other reserved character is percent-escaped.
_QUERY_SAFE = "/?"


def escape(string: str) -> str:
    """Percent-escape a query string key or value."""
    return quote(string, safe=_QUERY_SAFE)


class BoolEncoding(Enum):
    """How booleans are written into a query string."""
    NUMERIC = "numeric"  # 1 / 0
    LITERAL = "literal"  # true / false

    def encode(self, value: bool) -> str:
        if self is BoolEncoding.NUMERIC:
            return "1" if value else "0"
        return "true" if value else "false"


class ArrayEncoding(Enum):
    """How the key of a sequence element is written into a query string."""
    BRACKETS = "brackets"  # key[]=a&key[]=b
    NO_BRACKETS = "no_brackets"  # key=a&key=b

    def encode(self, key: str) -> str:
        if self is ArrayEncoding.BRACKETS:
            return f"{key}[]"
        return key


class QueryEncoding:
    """Encodes a record-shaped value into ordered, percent-escaped query pairs.

    Keys are visited in sorted order at every level so the same input always
    produces the same output, whatever the field order of its source.
    """

    def __init__(self, array_encoding: ArrayEncoding = ArrayEncoding.NO_BRACKETS,
                 bool_encoding: BoolEncoding = BoolEncoding.NUMERIC,
                 encoder: Optional[JSONEncoder] = None):
        self.array_encoding = array_encoding
        self.bool_encoding = bool_encoding
        self.encoder = encoder or JSONEncoder()

    def pairs(self, value: Any) -> List[Tuple[str, str]]:
        params = self.encoder.to_tree(value)
        if not isinstance(params, dict):
            raise CodingError("Failed to unwrap parameter dictionary")

        components: List[Tuple[str, str]] = []
        for key in sorted(params):
            components.extend(self._components(key, params[key]))
        return components

    def encode(self, value: Any) -> List[Parameter]:
        return [Parameter(key, item) for key, item in self.pairs(value)]

    def _components(self, key: str, value: Any) -> List[Tuple[str, str]]:
        """Percent-escaped query components for one key/value pair, recursing into containers."""
        components: List[Tuple[str, str]] = []
        if isinstance(value, dict):
            for nested_key in sorted(value):
                components.extend(self._components(f"{key}[{nested_key}]", value[nested_key]))
        elif isinstance(value, list):
            for item in value:
                components.extend(self._components(self.array_encoding.encode(key), item))
        elif isinstance(value, bool):
            components.append((escape(key), escape(self.bool_encoding.encode(value))))
        elif value is None:
            components.append((escape(key), ""))
        else:
            components.append((escape(key), escape(str(value))))
        return components
