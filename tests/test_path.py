import pytest

from APIConnect import Parameter, Path, PathBuilder, PathComponent, path_components, query_components, render
from APIConnect.path import parameters, paths


@pytest.mark.parametrize("raw, expected", [
    ("users", Path("users")),
    ("page=1", Parameter("page", "1")),
    ("a=b=c", Path("a=b=c")),
    ("=x", Path("=x")),
    ("key=", Path("key=")),
])
def test_parse(raw, expected):
    assert PathComponent.parse(raw) == expected


def test_kind_predicates():
    assert Path("users").is_path
    assert not Path("users").is_parameter
    assert Parameter("page", "1").is_parameter
    assert str(Parameter("page", "1")) == "page=1"


def test_path_components_splits_path_and_query():
    components = path_components("galaxies/1?page=1&size=10")

    assert components == [Path("galaxies"), Path("1"), Parameter("page", "1"), Parameter("size", "10")]
    assert paths(components) == [Path("galaxies"), Path("1")]
    assert parameters(components) == [Parameter("page", "1"), Parameter("size", "10")]


@pytest.mark.parametrize("raw, expected", [
    ("/users/", [Path("users")]),
    ("a=1&b=2", [Parameter("a", "1"), Parameter("b", "2")]),
    ("users", [Path("users")]),
    ("", []),
])
def test_path_components_drops_empty_pieces(raw, expected):
    assert path_components(raw) == expected


def test_render():
    components = [Parameter("page", "1"), Path("galaxies"), Parameter("size", "10"), Path("1")]

    assert render(components) == "galaxies/1?page=1&size=10"
    assert render([Path("a")]) == "a"
    assert render([Parameter("a", "1")]) == "a=1"
    assert render([]) == ""


def test_builder():
    builder = PathBuilder(["v1"]).add("users").add(42).param("page", 1).extend(["size=10"])

    assert builder.build() == [Path("v1"), Path("users"), Path("42"), Parameter("page", "1"),
                               Parameter("size", "10")]
    assert str(builder) == "v1/users/42?page=1&size=10"


def test_builder_returns_copies():
    builder = PathBuilder().add("a")
    built = builder.build()
    builder.add("b")

    assert built == [Path("a")]


@pytest.mark.parametrize("raw, expected", [
    ("page=1&size=10", [Parameter("page", "1"), Parameter("size", "10")]),
    ("?page=1", [Parameter("page", "1")]),
    ("key=&flag", [Parameter("key", ""), Parameter("flag", None)]),
    ("a=b=c", [Parameter("a", "b=c")]),
    ("&&x=1&", [Parameter("x", "1")]),
    ("", []),
])
def test_query_components(raw, expected):
    assert query_components(raw) == expected


def test_bare_flag_renders_without_equals():
    assert str(Parameter("debug", None)) == "debug"
    assert render([Path("search"), Parameter("debug", None), Parameter("q", "")]) == "search?debug&q="
