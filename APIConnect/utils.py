import re
from typing import Any, Callable

_ACRONYM_BOUNDARY = re.compile(r"([A-Z]+)([A-Z][a-z])")
_WORD_BOUNDARY = re.compile(r"([a-z0-9])([A-Z])")


def camel_to_snake(key: str) -> str:
    """`userId` -> `user_id`, `HTTPCode` -> `http_code`."""
    key = _ACRONYM_BOUNDARY.sub(r"\1_\2", key)
    return _WORD_BOUNDARY.sub(r"\1_\2", key).lower()


def snake_to_camel(key: str) -> str:
    """`user_id` -> `userId`. Leading and trailing underscores are kept."""
    stripped = key.strip("_")
    if not stripped:
        return key
    lead = key[:len(key) - len(key.lstrip("_"))]
    trail = key[len(key.rstrip("_")):]
    first, *rest = [word for word in stripped.split("_") if word]
    return lead + first + "".join(word[:1].upper() + word[1:] for word in rest) + trail


def convert_keys(tree: Any, convert: Callable[[str], str]) -> Any:
    """Rename the keys of every mapping in an untyped JSON tree."""
    if isinstance(tree, dict):
        return {convert(key) if isinstance(key, str) else key: convert_keys(value, convert)
                for key, value in tree.items()}
    if isinstance(tree, list):
        return [convert_keys(item, convert) for item in tree]
    return tree
