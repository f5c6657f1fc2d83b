from dataclasses import dataclass
from typing import List, Optional

import pytest

from APIConnect import ArrayEncoding, BoolEncoding, CodingError, JSONEncoder, KeyEncodingStrategy, Parameter, QueryEncoding


@dataclass
class Search:
    term: str
    tags: List[str]
    limit: Optional[int] = None


def test_keys_are_sorted_and_values_escaped():
    pairs = QueryEncoding().pairs({"b": 2, "a": "x y"})

    assert pairs == [("a", "x%20y"), ("b", "2")]


def test_slash_and_question_mark_stay_unescaped():
    assert QueryEncoding().pairs({"next": "a/b?c&d=e"}) == [("next", "a/b?c%26d%3De")]


@pytest.mark.parametrize("encoding, expected", [
    (BoolEncoding.NUMERIC, [("off", "0"), ("on", "1")]),
    (BoolEncoding.LITERAL, [("off", "false"), ("on", "true")]),
])
def test_bool_encoding(encoding, expected):
    assert QueryEncoding(bool_encoding=encoding).pairs({"on": True, "off": False}) == expected


def test_arrays_without_brackets():
    assert QueryEncoding().pairs({"ids": [1, 2]}) == [("ids", "1"), ("ids", "2")]


def test_arrays_with_brackets():
    pairs = QueryEncoding(array_encoding=ArrayEncoding.BRACKETS).pairs({"ids": [1, 2]})

    assert pairs == [("ids%5B%5D", "1"), ("ids%5B%5D", "2")]


def test_nested_records_use_bracketed_keys_in_sorted_order():
    pairs = QueryEncoding().pairs({"filter": {"z": 1, "a": 2}})

    assert pairs == [("filter%5Ba%5D", "2"), ("filter%5Bz%5D", "1")]


def test_none_encodes_to_empty_value():
    assert QueryEncoding().pairs({"q": None}) == [("q", "")]


def test_dataclass_values():
    pairs = QueryEncoding().pairs(Search(term="red shoes", tags=["a", "b"], limit=5))

    assert pairs == [("limit", "5"), ("tags", "a"), ("tags", "b"), ("term", "red%20shoes")]


def test_encoder_key_strategy_applies():
    encoding = QueryEncoding(encoder=JSONEncoder(KeyEncodingStrategy.CONVERT_TO_CAMEL_CASE))

    assert encoding.pairs({"user_id": 1}) == [("userId", "1")]


@pytest.mark.parametrize("value", [[1, 2], "plain", 3])
def test_non_record_values_fail(value):
    with pytest.raises(CodingError) as info:
        QueryEncoding().pairs(value)
    assert info.value.reason == "Failed to unwrap parameter dictionary"


def test_unencodable_value_fails():
    with pytest.raises(CodingError):
        QueryEncoding().pairs({"when": object()})


def test_encode_returns_parameters():
    assert QueryEncoding().encode({"page": 1}) == [Parameter("page", "1")]
