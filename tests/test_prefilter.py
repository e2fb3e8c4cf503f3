"""Tests for the string-similarity pre-filter."""

from __future__ import annotations

import pytest

from disambiguator.matching.prefilter import (
    CONTAINMENT_SCORE,
    PrefilterThresholds,
    has_string_similarity,
    string_similarity,
)


class TestStringSimilarity:
    """Tests for string_similarity."""

    def test_identical(self) -> None:
        assert string_similarity("John", "john") == 1.0

    def test_whitespace_and_case_ignored(self) -> None:
        assert string_similarity("  ACME Corp ", "acme corp") == 1.0

    def test_containment(self) -> None:
        assert string_similarity("Acme", "Acme Corporation") == CONTAINMENT_SCORE
        assert string_similarity("Acme Corporation", "Acme") == CONTAINMENT_SCORE

    def test_positional_ratio(self) -> None:
        # j, o match; n vs h differs; divided by the longer length
        assert string_similarity("jon", "john") == pytest.approx(2 / 4)

    def test_no_overlap(self) -> None:
        assert string_similarity("zed", "amy") == 0.0

    def test_empty(self) -> None:
        assert string_similarity("", "john") == 0.0
        assert string_similarity("john", "") == 0.0


class TestHasStringSimilarity:
    """Tests for the field-by-field gate."""

    def test_similar_first_names_pass(self) -> None:
        assert has_string_similarity({"firstName": "Jon"}, {"firstName": "John"})

    def test_unrelated_first_names_fail(self) -> None:
        assert not has_string_similarity({"firstName": "Zed"}, {"firstName": "Amy"})

    def test_full_name_uses_lower_threshold(self) -> None:
        # "ana li" vs "ben lo" scores 2/6; the parts score 0.0 and 0.5
        a = {"firstName": "Ana", "lastName": "Li"}
        b = {"firstName": "Ben", "lastName": "Lo"}
        assert has_string_similarity(a, b)

    def test_last_name_alone(self) -> None:
        assert has_string_similarity({"lastName": "Nakamura"}, {"lastName": "nakamura"})

    def test_company_match(self) -> None:
        a = {"firstName": "Ann", "currentCompany": "Globex"}
        b = {"firstName": "Bob", "currentCompany": "Globex"}
        assert has_string_similarity(a, b)

    def test_company_falls_back_to_company_key(self) -> None:
        assert has_string_similarity({"company": "Initech"}, {"currentCompany": "Initech"})

    def test_location_match(self) -> None:
        assert has_string_similarity({"location": "Berlin"}, {"location": "berlin "})

    def test_company_needs_stricter_threshold(self) -> None:
        # 4 of 7 positions match: 0.57 passes a name part but not a company
        a = {"currentCompany": "abcdxyz"}
        b = {"currentCompany": "abcdqrs"}
        assert not has_string_similarity(a, b)

    def test_missing_fields_are_skipped(self) -> None:
        assert not has_string_similarity({"firstName": "Ann"}, {"location": "Ann Arbor"})

    def test_missing_snapshot(self) -> None:
        assert not has_string_similarity(None, {"firstName": "Ann"})
        assert not has_string_similarity({}, {})

    def test_custom_thresholds(self) -> None:
        strict = PrefilterThresholds(full_name=0.99, name_part=0.99, attribute=0.99)
        assert not has_string_similarity({"firstName": "Jon"}, {"firstName": "John"}, strict)
