"""
Tests for field-level similarity functions.
"""

import pytest

from processing.dedup.similarity import (
    exact_match,
    jaro_similarity,
    jaro_winkler,
    numeric_match,
    token_overlap_similarity,
)


class TestJaro:
    def test_textbook_values(self):
        assert jaro_similarity("MARTHA", "MARHTA") == pytest.approx(0.9444, abs=1e-4)
        assert jaro_similarity("DWAYNE", "DUANE") == pytest.approx(0.8222, abs=1e-4)
        assert jaro_similarity("DIXON", "DICKSONX") == pytest.approx(0.7667, abs=1e-4)

    def test_identical_and_empty(self):
        assert jaro_similarity("plumbing", "plumbing") == 1.0
        assert jaro_similarity("", "") == 1.0
        assert jaro_similarity("", "abc") == 0.0
        assert jaro_similarity("abc", "") == 0.0

    def test_no_common_characters(self):
        assert jaro_similarity("abc", "xyz") == 0.0

    def test_odd_transpositions_count_half(self):
        # 29 matches, 7 out of order: (m - 3.5) / m, not (m - 3) / m
        s1 = "denver electrical co for sale"
        s2 = "denver electrical company - for sale"
        expected = (29 / 29 + 29 / 36 + (29 - 3.5) / 29) / 3

        assert jaro_similarity(s1, s2) == pytest.approx(expected)
        assert jaro_similarity(s1, s2) == pytest.approx(0.8950, abs=1e-4)

    def test_match_window(self):
        # window is max(0, 4 // 2 - 1) = 1; "d" at 0 and 3 are too far apart
        assert jaro_similarity("dabc", "xyzd") == 0.0
        assert jaro_similarity("ab", "ba") == 0.0


class TestJaroWinkler:
    def test_textbook_values(self):
        assert jaro_winkler("MARTHA", "MARHTA") == pytest.approx(0.9611, abs=1e-4)
        assert jaro_winkler("DWAYNE", "DUANE") == pytest.approx(0.84, abs=1e-4)
        assert jaro_winkler("DIXON", "DICKSONX") == pytest.approx(0.8133, abs=1e-4)

    def test_denver_titles(self):
        score = jaro_winkler("Denver Electrical Co for Sale", "Denver Electrical Company - For Sale")
        jaro = (1 + 29 / 36 + 25.5 / 29) / 3
        assert score == pytest.approx(jaro + 0.4 * (1 - jaro))
        assert score == pytest.approx(0.9370, abs=1e-4)

    def test_case_insensitive(self):
        assert jaro_winkler("Denver Electrical", "DENVER ELECTRICAL") == 1.0

    @pytest.mark.parametrize("s", ["a", "hvac", "Denver Electrical Co for Sale"])
    def test_identity(self, s):
        assert jaro_winkler(s, s) == 1.0

    def test_empty(self):
        assert jaro_winkler("", "denver") == 0.0
        assert jaro_winkler("denver", "") == 0.0

    @pytest.mark.parametrize("pair", [
        ("martha", "marhta"),
        ("front range plumbing", "front range pipe repair"),
        ("abc", "cab"),
        ("crater", "tracer"),
    ])
    def test_symmetric(self, pair):
        s1, s2 = pair
        assert jaro_winkler(s1, s2) == jaro_winkler(s2, s1)

    def test_prefix_bonus_applies_below_point_seven(self):
        # jaro = 2/3; four shared prefix chars add 0.4 * (1 - 2/3)
        assert jaro_similarity("abcdwxyz", "abcdqrst") == pytest.approx(2 / 3)
        assert jaro_winkler("abcdwxyz", "abcdqrst") == pytest.approx(0.8)

    def test_prefix_capped_at_four(self):
        jaro = jaro_similarity("abcdefgh", "abcdefxy")
        assert jaro_winkler("abcdefgh", "abcdefxy") == pytest.approx(jaro + 0.4 * (1 - jaro))

    def test_in_unit_interval(self):
        for s1, s2 in [("a", "b"), ("ab", "ba"), ("restaurant", "restoration")]:
            assert 0.0 <= jaro_winkler(s1, s2) <= 1.0


class TestTokenOverlap:
    def test_jaccard(self):
        score = token_overlap_similarity(
            "Established HVAC company with loyal customers",
            "HVAC company with loyal customer base",
        )
        # {hvac, company, loyal} / {established, hvac, company, loyal, customers, customer, base}
        assert score == pytest.approx(3 / 7)

    def test_identical_text(self):
        text = "Profitable landscaping route in Austin"
        assert token_overlap_similarity(text, text) == 1.0

    def test_missing_or_stop_words_only(self):
        assert token_overlap_similarity(None, "anything here") == 0.0
        assert token_overlap_similarity("", "anything here") == 0.0
        assert token_overlap_similarity("for the sale", "for the sale") == 0.0


class TestNumericMatch:
    def test_within_tolerance(self):
        assert numeric_match(500_000, 510_000, 0.05) == 1.0

    def test_outside_tolerance(self):
        assert numeric_match(500_000, 600_000, 0.05) == 0.0

    def test_boundary_is_inclusive(self):
        # |100 - 110| / 105 = 0.0952...
        assert numeric_match(100, 110, 0.1) == 1.0
        assert numeric_match(100, 112, 0.1) == 0.0

    def test_missing_or_zero(self):
        assert numeric_match(None, 500_000, 0.05) == 0.0
        assert numeric_match(500_000, None, 0.05) == 0.0
        assert numeric_match(0, 0, 0.05) == 0.0


class TestExactMatch:
    def test_case_and_whitespace(self):
        assert exact_match("Denver", " denver ") == 1.0
        assert exact_match("CO", "co") == 1.0

    def test_different(self):
        assert exact_match("Denver", "Boulder") == 0.0

    def test_missing_never_matches(self):
        assert exact_match(None, None) == 0.0
        assert exact_match("", "") == 0.0
        assert exact_match("Denver", None) == 0.0
