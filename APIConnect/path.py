from dataclasses import dataclass
from typing import Any, Iterable, List, Optional, Sequence, Union


class PathComponent:
    """A typed piece of a request path: either a `Path` segment or a query `Parameter`."""

    @staticmethod
    def parse(value: str) -> "PathComponent":
        """`"key=value"` becomes a Parameter, anything else a Path segment."""
        parts = [part for part in value.split("=") if part]
        if len(parts) == 2:
            return Parameter(parts[0], parts[1])
        return Path(value)

    @property
    def is_path(self) -> bool:
        return isinstance(self, Path)

    @property
    def is_parameter(self) -> bool:
        return isinstance(self, Parameter)


@dataclass(frozen=True)
class Path(PathComponent):
    value: str

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Parameter(PathComponent):
    """A query parameter. A `None` value is a bare flag rendered without `=`."""
    key: str
    value: Optional[str]

    def __str__(self) -> str:
        if self.value is None:
            return self.key
        return f"{self.key}={self.value}"


ComponentLike = Union[PathComponent, str, int]


def to_component(value: ComponentLike) -> PathComponent:
    if isinstance(value, PathComponent):
        return value
    return PathComponent.parse(str(value))


def path_components(string: str) -> List[PathComponent]:
    """Split `"galaxies/1?page=1&size=10"` into components, dropping empty pieces."""
    pieces: List[str] = []
    parts = string.split("?")
    if len(parts) == 2:
        pieces = parts[0].split("/") + parts[1].split("&")
    elif parts:
        first = parts[0]
        if "/" in first:
            pieces = first.split("/")
        elif "&" in first:
            pieces = first.split("&")
        elif first:
            pieces = [first]
    return [PathComponent.parse(piece) for piece in pieces if piece]


def query_components(string: str) -> List[PathComponent]:
    """Split a query string into Parameters, one per `&`-separated piece.

    `key=` keeps its empty value and a piece without `=` becomes a bare
    flag. A leading `?` is ignored.
    """
    result: List[PathComponent] = []
    for piece in string.lstrip("?").split("&"):
        if not piece:
            continue
        key, sep, value = piece.partition("=")
        result.append(Parameter(key, value if sep else None))
    return result


def paths(components: Iterable[PathComponent]) -> List[PathComponent]:
    return [component for component in components if component.is_path]


def parameters(components: Iterable[PathComponent]) -> List[PathComponent]:
    return [component for component in components if component.is_parameter]


def render(components: Sequence[PathComponent]) -> str:
    """Render components as a readable path string, e.g. `galaxies?page=1&size=10`."""
    halves = [
        "/".join(str(component) for component in paths(components)),
        "&".join(str(component) for component in parameters(components)),
    ]
    return "?".join(half for half in halves if half)


class PathBuilder:
    """Chained builder for path components.

        PathBuilder().add("users").add(42).param("page", 1).build()
    """

    def __init__(self, components: Iterable[ComponentLike] = ()):
        self._components: List[PathComponent] = [to_component(c) for c in components]

    def add(self, segment: Any) -> "PathBuilder":
        self._components.append(Path(str(segment)))
        return self

    def param(self, key: str, value: Any) -> "PathBuilder":
        self._components.append(Parameter(key, str(value)))
        return self

    def extend(self, components: Iterable[ComponentLike]) -> "PathBuilder":
        self._components.extend(to_component(c) for c in components)
        return self

    def build(self) -> List[PathComponent]:
        return list(self._components)

    def __str__(self) -> str:
        return render(self._components)
