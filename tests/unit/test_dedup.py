"""Tests for URL normalization and batch deduplication."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from flatcrawl.dedup import URLDeduplicator, filter_new_urls, normalize_url


# ------------------------------------------------------------------
# normalize_url
# ------------------------------------------------------------------

URLS = [
    "https://a.example/x",
    "https://a.example/x?sid=1",
    "https://a.example/x?a=1&sid=2&b=3#frag",
    "https://a.example/x?sid=1&sid=2",
    "https://a.example/x?&&sid=1&",
    "https://a.example?sid=1",
    "https://a.example/Path/UPPER?keep=Yes&sid=z",
    "https://a.example/x?s%69d=1&keep",
    "not a url?sid=1",
    "",
]


@pytest.mark.parametrize("url", [u for u in URLS if u.startswith("https://")])
def test_empty_params_is_identity(url):
    assert normalize_url(url, []) == url


def test_removes_named_param():
    assert normalize_url("https://a.example/x?sid=1", ["sid"]) == "https://a.example/x"


def test_keeps_remaining_params_in_order():
    url = "https://a.example/x?b=2&sid=9&a=1&c=3"
    assert normalize_url(url, ["sid"]) == "https://a.example/x?b=2&a=1&c=3"


def test_removes_every_occurrence():
    url = "https://a.example/x?sid=1&q=z&sid=2"
    assert normalize_url(url, ["sid"]) == "https://a.example/x?q=z"


def test_absent_param_is_not_an_error():
    assert normalize_url("https://a.example/x?q=1", ["sid"]) == "https://a.example/x?q=1"


def test_fragment_and_case_untouched():
    url = "https://a.example/Path/UPPER?keep=Yes&sid=z#Section"
    assert normalize_url(url, ["sid"]) == "https://a.example/Path/UPPER?keep=Yes#Section"


def test_param_names_are_decoded_before_matching():
    assert normalize_url("https://a.example/x?s%69d=1&keep", ["sid"]) == "https://a.example/x?keep"


def test_param_names_are_case_sensitive():
    assert normalize_url("https://a.example/x?SID=1", ["sid"]) == "https://a.example/x?SID=1"


def test_multiple_params():
    url = "https://a.example/x?searchId=a&utm_source=b&page=2"
    assert normalize_url(url, ["searchId", "utm_source"]) == "https://a.example/x?page=2"


def test_untouched_query_is_left_as_is():
    assert normalize_url("https://x/1?", ["sid"]) == "https://x/1?"
    assert normalize_url("https://x/a?&b=1", ["sid"]) == "https://x/a?&b=1"


def test_empty_segments_survive_removal():
    assert normalize_url("https://a.example/x?&&sid=1&", ["sid"]) == "https://a.example/x?&&"


@pytest.mark.parametrize("bad", ["not a url?sid=1", "", "/relative?sid=1", "https://?sid=1"])
def test_malformed_input_is_returned_unchanged(bad):
    assert normalize_url(bad, ["sid"]) == bad


@pytest.mark.parametrize("url", URLS)
@pytest.mark.parametrize("params", [[], ["sid"], ["sid", "keep", "a"]])
def test_idempotent(url, params):
    once = normalize_url(url, params)
    assert normalize_url(once, params) == once


# ------------------------------------------------------------------
# URLDeduplicator
# ------------------------------------------------------------------


def test_deduplicator_marks_seen():
    dedup = URLDeduplicator(["sid"])
    assert dedup.is_new("https://a.example/x?sid=1") is True
    assert dedup.is_new("https://a.example/x?sid=2") is False
    assert dedup.count == 1


def test_deduplicator_passes_malformed_through_when_normalizing():
    dedup = URLDeduplicator(["sid"])
    assert dedup.is_new("garbage") is True
    assert dedup.is_new("garbage") is True


# ------------------------------------------------------------------
# filter_new_urls
# ------------------------------------------------------------------


def test_empty_batch():
    assert filter_new_urls([], {"https://a.example/x"}, ["sid"]) == []


def test_normalized_match_against_existing():
    assert filter_new_urls(
        ["https://a.example/x?sid=1"], {"https://a.example/x?sid=2"}, ["sid"]
    ) == []


def test_intra_batch_duplicates_keep_first():
    result = filter_new_urls(
        ["https://a.example/x?sid=1", "https://a.example/x?sid=2"], set(), ["sid"]
    )
    assert result == ["https://a.example/x?sid=1"]


def test_exact_membership_without_params():
    assert filter_new_urls(
        ["https://a.example/y"], {"https://a.example/x"}, []
    ) == ["https://a.example/y"]


def test_without_params_query_variants_are_distinct():
    result = filter_new_urls(
        ["https://a.example/x?sid=1", "https://a.example/x?sid=2"],
        {"https://a.example/x?sid=3"},
        [],
    )
    assert result == ["https://a.example/x?sid=1", "https://a.example/x?sid=2"]


def test_without_params_exact_batch_repeats_collapse():
    result = filter_new_urls(["https://a.example/x", "https://a.example/x"], set(), [])
    assert result == ["https://a.example/x"]


def test_without_params_never_normalizes():
    with patch("flatcrawl.dedup.normalize_url") as mock_normalize:
        filter_new_urls(["https://a.example/x"], {"https://a.example/y"}, [])
    mock_normalize.assert_not_called()


def test_order_preserved():
    candidates = [
        "https://a.example/3",
        "https://a.example/1?sid=x",
        "https://a.example/2",
        "https://a.example/1?sid=y",
    ]
    assert filter_new_urls(candidates, {"https://a.example/2?sid=q"}, ["sid"]) == [
        "https://a.example/3",
        "https://a.example/1?sid=x",
    ]


def test_malformed_candidates_pass_through():
    result = filter_new_urls(["::::", "::::", "https://a.example/x"], {"::::"}, ["sid"])
    assert result == ["::::", "::::", "https://a.example/x"]


def test_existing_with_other_params_does_not_match():
    result = filter_new_urls(
        ["https://a.example/x?sid=1&page=2"], {"https://a.example/x?sid=1"}, ["sid"]
    )
    assert result == ["https://a.example/x?sid=1&page=2"]


def test_empty_segment_variant_is_not_a_duplicate():
    result = filter_new_urls(["https://x/a?&b=1"], {"https://x/a?b=1"}, ["sid"])
    assert result == ["https://x/a?&b=1"]
