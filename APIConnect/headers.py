from typing import Iterable, Iterator, List, Mapping, Optional, Tuple, Union

_WHITESPACE = " \t\r\n"

HeaderPairs = Union["HTTPHeaders", Mapping[str, str], Iterable[Tuple[str, str]]]


def _same_name(lhs: str, rhs: str) -> bool:
    return len(lhs) == len(rhs) and lhs.lower() == rhs.lower()


class HTTPHeaders:
    """A block of HTTP header fields.

    Headers are kept as an ordered sequence of (name, value) pairs so that
    repeated fields keep their order, while lookups by name are
    case-insensitive. Names are treated as ASCII.

    A frozen block (see `freeze`) rejects mutation; `copy` returns a
    mutable block.
    """

    def __init__(self, headers: Optional[HeaderPairs] = None):
        self._headers: List[Tuple[str, str]] = []
        self._frozen = False
        if headers is not None:
            self.add_all(headers)

    # Mutation
    def add(self, name: str, value: str) -> None:
        """Add a name/value pair. Strictly additive."""
        self._check_mutable()
        if not name.isascii():
            raise ValueError(f"Header name must be ASCII: {name!r}")
        self._headers.append((name, str(value)))

    def add_all(self, other: HeaderPairs) -> None:
        """Add every pair from another header block, a mapping or a pair sequence."""
        if isinstance(other, HTTPHeaders):
            pairs: Iterable[Tuple[str, str]] = list(other)
        elif isinstance(other, Mapping):
            pairs = other.items()
        else:
            pairs = other
        for name, value in pairs:
            self.add(name, value)

    def replace_or_add(self, name: str, value: str) -> None:
        """Remove every value for `name`, then add `value`."""
        self.remove(name)
        self.add(name, value)

    def remove(self, name: str) -> None:
        """Remove all values for `name`."""
        self._check_mutable()
        self._headers = [(key, value) for key, value in self._headers if not _same_name(key, name)]

    # Lookup
    def values(self, name: str) -> List[str]:
        """All values for `name` in their original form, without splitting on commas."""
        return [value for key, value in self._headers if _same_name(key, name)]

    def first(self, name: str) -> Optional[str]:
        for key, value in self._headers:
            if _same_name(key, name):
                return value
        return None

    def contains(self, name: str) -> bool:
        return any(_same_name(key, name) for key, _ in self._headers)

    def canonical_values(self, name: str) -> List[str]:
        """Values for `name` split on commas as list headers are.

        Set-Cookie values are returned unsplit since they may legitimately
        contain commas.
        """
        result = self.values(name)
        if not result:
            return []
        if name.lower() == "set-cookie":
            return result
        return [piece.strip(_WHITESPACE) for value in result for piece in value.split(",") if piece]

    @property
    def names(self) -> List[str]:
        return [name for name, _ in self._headers]

    def items(self) -> List[Tuple[str, str]]:
        return list(self._headers)

    def copy(self) -> "HTTPHeaders":
        return HTTPHeaders(self._headers)

    def freeze(self) -> "HTTPHeaders":
        """Make this block read-only and return it."""
        self._frozen = True
        return self

    @property
    def is_frozen(self) -> bool:
        return self._frozen

    def _check_mutable(self) -> None:
        if self._frozen:
            raise TypeError("Headers are read-only; modify a copy() instead")

    # Protocols
    def __getitem__(self, name: str) -> List[str]:
        return self.values(name)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.contains(name)

    def __iter__(self) -> Iterator[Tuple[str, str]]:
        return iter(list(self._headers))

    def __len__(self) -> int:
        return len(self._headers)

    def __bool__(self) -> bool:
        return bool(self._headers)

    def _normalized(self):
        names = {name.lower() for name, _ in self._headers}
        return {name: tuple(sorted(self.values(name))) for name in names}

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, HTTPHeaders):
            return NotImplemented
        if len(self) != len(other):
            return False
        return self._normalized() == other._normalized()

    def __hash__(self) -> int:
        return hash(frozenset(self._normalized().items()))

    def __repr__(self) -> str:
        return f"HTTPHeaders({self._headers!r})"
