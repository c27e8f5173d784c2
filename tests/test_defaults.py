import pytest

from bollard.defaults import FALLBACK_RULE, DefaultsResolver, DefaultsRule
from bollard.errors import ConfigurationError


def test_most_specific_rule_wins():
    resolver = DefaultsResolver(
        [
            DefaultsRule(path="/blog", values={"Layout": "A"}),
            DefaultsRule(ext=".md", values={"Layout": "B"}),
            DefaultsRule(path="/blog/2024", ext=".md", values={"Layout": "C"}),
        ]
    )
    assert resolver.resolve("/blog/2024/x.md") == {"Layout": "C"}
    assert resolver.resolve("/blog/2023/x.md") == {"Layout": "B"}
    assert resolver.resolve("/blog/2023/x.html") == {"Layout": "A"}


def test_no_matching_rule_gives_empty_attributes():
    resolver = DefaultsResolver([DefaultsRule(path="/blog", values={"Layout": "A"})])
    assert resolver.resolve("/about.md") == {}
    assert resolver.best_rule("/about.md") is FALLBACK_RULE


def test_unscoped_rule_is_site_wide_default():
    resolver = DefaultsResolver(
        [
            DefaultsRule(values={"Layout": "site"}),
            DefaultsRule(path="/blog", values={"Layout": "blog"}),
        ]
    )
    assert resolver.resolve("/about.md") == {"Layout": "site"}
    assert resolver.resolve("/blog/x.md") == {"Layout": "blog"}


def test_ties_go_to_first_declared_rule():
    resolver = DefaultsResolver(
        [
            DefaultsRule(ext=".md", values={"Layout": "first"}),
            DefaultsRule(collection="photos", values={"Layout": "second"}),
        ]
    )
    assert resolver.resolve("/photos/x.md", "photos") == {"Layout": "first"}


def test_matching_is_case_insensitive_for_path_and_ext_but_not_collection():
    resolver = DefaultsResolver(
        [
            DefaultsRule(path="/Blog", values={"From": "path"}),
            DefaultsRule(ext=".MD", values={"From": "ext"}),
            DefaultsRule(collection="Photos", values={"From": "collection"}),
        ]
    )
    assert resolver.resolve("/blog/x.txt") == {"From": "path"}
    assert resolver.resolve("/x.md") == {"From": "ext"}
    assert resolver.resolve("/x.html", "photos") == {}
    assert resolver.resolve("/x.html", "Photos") == {"From": "collection"}


def test_resolve_returns_a_copy():
    rule = DefaultsRule(values={"Layout": "site"})
    resolver = DefaultsResolver([rule])
    attrs = resolver.resolve("/x.md")
    attrs["Layout"] = "changed"
    assert resolver.resolve("/x.md") == {"Layout": "site"}


def test_score_weights():
    rule = DefaultsRule(path="/blog", ext=".md", collection="c")
    assert rule.score("/blog/x.md", ".md", "c") == 250 + 250 + len("/blog")
    assert rule.score("/other/x.md", ".md", None) == 250


def test_from_mapping_normalizes_extension_and_drops_none():
    rule = DefaultsRule.from_mapping(
        {"scope": {"path": "/blog", "ext": "md"}, "values": {"Layout": "post", "X": None}}
    )
    assert rule == DefaultsRule(path="/blog", ext=".md", values={"Layout": "post"})


def test_from_mapping_treats_empty_scope_as_unset():
    rule = DefaultsRule.from_mapping(
        {"scope": {"path": "", "ext": "", "collection": ""}, "values": {"Layout": "base"}}
    )
    assert rule.unscoped
    assert DefaultsResolver([rule]).resolve("/any/page.md") == {"Layout": "base"}


@pytest.mark.parametrize(
    "entry",
    [
        "not a mapping",
        {"scope": ["/blog"]},
        {"values": "post"},
        {"scope": {"path": 3}},
        {"values": {"Tags": ["a", "b"]}},
    ],
)
def test_from_mapping_rejects_malformed_entries(entry):
    with pytest.raises(ConfigurationError):
        DefaultsRule.from_mapping(entry)
