"""Unit tests for match scoring."""

import itertools

import pytest

from listbridge.core.models import Track
from listbridge.core.rules import MatchRules
from listbridge.core.scorer import (
    artist_score,
    duration_score,
    explicit_score,
    jaro_winkler,
    score_match,
    title_score,
    token_set_ratio,
    year_score,
)


class TestJaroWinkler:
    """Reference values for the standard Jaro-Winkler metric."""

    def test_martha(self):
        assert jaro_winkler("MARTHA", "MARHTA") == pytest.approx(0.9611, abs=1e-4)

    def test_dwayne(self):
        assert jaro_winkler("DWAYNE", "DUANE") == pytest.approx(0.84, abs=1e-4)

    def test_dixon(self):
        assert jaro_winkler("DIXON", "DICKSONX") == pytest.approx(0.8133, abs=1e-4)

    @pytest.mark.parametrize("a,b,expected", [
        ("city lights", "let it go", 0.5034),
        (" a c", "ac cabbc", 0.5417),
    ])
    def test_odd_transposition_count_halved_exactly(self, a, b, expected):
        assert jaro_winkler(a, b) == pytest.approx(expected, abs=1e-4)

    def test_single_characters(self):
        assert jaro_winkler("a", "b") == 0.0

    def test_equal_and_empty(self):
        assert jaro_winkler("same", "same") == 1.0
        assert jaro_winkler("", "abc") == 0.0
        assert jaro_winkler("abc", "") == 0.0

    def test_no_common_characters(self):
        assert jaro_winkler("abc", "xyz") == 0.0

    def test_token_set_ratio_identical(self):
        assert token_set_ratio("city lights", "city lights") == 1.0

    def test_token_set_ratio_reordered_tokens(self):
        ratio = token_set_ratio("lights city", "city lights")
        # Full token overlap, imperfect character alignment
        assert 0.5 < ratio < 1.0


class TestComponents:
    """Tests for individual score components."""

    def test_title_empty_is_zero(self):
        assert title_score("", "city lights") == 0
        assert title_score("city lights", "") == 0

    def test_title_identical_is_full(self):
        assert title_score("city lights", "city lights") == 50

    @pytest.mark.parametrize("a,b,expected", [
        ("city lights", "let it go", 20),
        ("city light", "bohemian rhapsody", 13),
        ("shape of you", "shape you of", 48),
    ])
    def test_title_reference_values(self, a, b, expected):
        assert title_score(a, b) == expected

    def test_artist_jaccard(self):
        assert artist_score({"a", "b"}, {"a", "b"}) == 30
        assert artist_score({"a", "b"}, {"a"}) == 15
        assert artist_score({"a"}, {"b"}) == 0
        assert artist_score(set(), {"a"}) == 0

    @pytest.mark.parametrize("a,b,expected", [
        (200000, 200000, 10),
        (200000, 202000, 10),
        (200000, 203000, 9),
        (200000, 205000, 8),
        (200000, 219999, 0),
        (200000, 220000, 0),
        (200000, 400000, 0),
        (0, 1000, 10),
        (None, 200000, 0),
        (200000, None, 0),
    ])
    def test_duration(self, a, b, expected):
        assert duration_score(a, b) == expected

    @pytest.mark.parametrize("a,b,expected", [
        (2020, 2020, 5),
        (2020, 2021, 3),
        (2020, 2022, 0),
        (2020, 2023, 0),
        (None, 2020, 0),
    ])
    def test_year(self, a, b, expected):
        assert year_score(a, b) == expected

    def test_year_never_negative_with_wide_tolerance(self):
        assert year_score(2000, 2004, tolerance=10) == 0

    @pytest.mark.parametrize("a,b,expected", [
        (True, True, 5),
        (False, False, 5),
        (True, False, 0),
        (None, False, 0),
        (True, None, 0),
    ])
    def test_explicit(self, a, b, expected):
        assert explicit_score(a, b) == expected


class TestScoreMatch:
    """Tests for score_match."""

    def test_official_video_auto_accepts(self, city_lights, city_lights_video):
        result = score_match(city_lights, city_lights_video)
        assert result.score >= 75
        assert result.breakdown == {"title": 50, "artist": 30, "duration": 10, "year": 5, "explicit": 5}

    def test_missing_title_zeroes_title_component(self, city_lights):
        untitled = Track(id="x", title="", artists=["Dreamstatic", "Feather"])
        assert score_match(city_lights, untitled).breakdown["title"] == 0
        assert score_match(untitled, city_lights).breakdown["title"] == 0

    def test_missing_fields_contribute_nothing(self):
        bare = Track(id="1", title="City Lights")
        other = Track(id="2", title="City Lights")
        result = score_match(bare, other)
        assert result.breakdown == {"title": 50, "artist": 0, "duration": 0, "year": 0, "explicit": 0}

    def test_year_tolerance_from_rules(self):
        a = Track(id="1", title="x", release_year=2000)
        b = Track(id="2", title="y", release_year=2001)
        assert score_match(a, b).breakdown["year"] == 3
        assert score_match(a, b, rules=MatchRules(year_tolerance=0)).breakdown["year"] == 0

    def test_score_is_bounded(self):
        titles = ["", "City Lights", "city lights (live)", "Totally Different Song", "ㅋ"]
        artists = [[], ["Dreamstatic"], ["Dreamstatic", "Feather"], ["Someone Else"]]
        durations = [None, 0, 198000, 500000]
        years = [None, 1990, 2020]
        explicit = [None, True, False]
        tracks = [
            Track(id=str(i), title=t, artists=a, duration_ms=d, release_year=y, explicit=e)
            for i, (t, a, d, y, e) in enumerate(
                itertools.product(titles, artists, durations[:2], years[1:], explicit[:2])
            )
        ]
        extra = [Track(id="z", title="City Lights", duration_ms=d, release_year=y, explicit=e)
                 for d in durations for y in years for e in explicit]
        pool = tracks[::7] + extra
        for source, candidate in itertools.product(pool, repeat=2):
            score = score_match(source, candidate).score
            assert 0 <= score <= 100
