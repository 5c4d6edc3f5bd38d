"""Tests for version filter rules (replacement, whitelist, blacklist)."""
import re

import pytest
from pydantic import ValidationError

from apprelease_exporter.core.domain.version_filter import ProjectFilter, Replacement, expand_template


def _filter(**kwargs) -> ProjectFilter:
    return ProjectFilter.model_validate(kwargs)


def test_rewrite_then_whitelist_then_blacklist():
    f = _filter(
        whitelist=r"^\d+\.\d+$",
        blacklist=r"^0\.",
        replacement=[{"match": r"v(\d+)", "replace": "$1"}],
    )

    assert f.normalize("v0.9") == ("0.9", False)
    assert f.normalize("v2.1") == ("2.1", True)


@pytest.mark.parametrize("raw", ["1.0-rc1", "2.0-rc3", "10.4-rc"])
def test_blacklist_vetoes_whitelist_match(raw):
    f = _filter(whitelist=r"^\d+", blacklist=r"rc")

    version, valid = f.normalize(raw)

    assert version == raw
    assert valid is False


def test_empty_filter_accepts_everything():
    f = ProjectFilter()

    assert f.normalize("latest") == ("latest", True)


def test_whitelist_is_a_search_not_a_full_match():
    f = _filter(whitelist=r"\d+\.\d+")

    assert f.normalize("release-1.2-final")[1] is True
    assert f.normalize("nightly")[1] is False


def test_blank_patterns_mean_unset():
    f = _filter(whitelist="   ", blacklist="")

    assert f.whitelist is None
    assert f.blacklist is None
    assert f.normalize("anything") == ("anything", True)


def test_patterns_are_stripped_and_compiled_once():
    f = _filter(whitelist="  ^1\\.  ")

    assert isinstance(f.whitelist, re.Pattern)
    assert f.whitelist.pattern == "^1\\."


def test_invalid_pattern_fails_validation():
    with pytest.raises(ValidationError):
        _filter(whitelist="([unclosed")

    with pytest.raises(ValidationError):
        _filter(replacement=[{"match": "(", "replace": ""}])


def test_replacements_are_applied_in_order():
    f = _filter(replacement=[
        {"match": "^release-", "replace": ""},
        {"match": "_", "replace": "."},
    ])

    assert f.normalize("release-1_2_3") == ("1.2.3", True)


def test_replacement_with_named_and_braced_groups():
    rule = Replacement.model_validate({
        "match": r"^(?P<major>\d+)-(\d+)$",
        "replace": "${major}.${2}",
    })

    assert rule.apply("3-14") == "3.14"


def test_replacement_unknown_group_expands_to_empty():
    rule = Replacement.model_validate({"match": r"^v(\d+)", "replace": "$1$9$missing"})

    assert rule.apply("v7.0") == "7.0"


def test_expand_template_literal_dollar():
    match = re.search(r"(\d+)", "cost 42")

    assert expand_template(match, "$$$1") == "$42"
