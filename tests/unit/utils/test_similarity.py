"""Tests for fuzzy path similarity."""

import pytest

from docport.utils.similarity import levenshtein_distance, normalize, similarity

PATHS = [
    "Topics/Getting_Started.htm",
    "topics/getting-started.htm",
    "Install.htm",
    "Reference/API.htm",
    "",
    "a",
]


class TestLevenshtein:
    @pytest.mark.parametrize(
        ("a", "b", "distance"),
        [("kitten", "sitting", 3), ("", "abc", 3), ("abc", "abc", 0), ("flaw", "lawn", 2)],
    )
    def test_distance(self, a, b, distance):
        assert levenshtein_distance(a, b) == distance


class TestSimilarity:
    """Tests for the similarity score."""

    def test_normalize(self):
        assert normalize("Topics/Getting_Started.htm") == "topicsgettingstartedhtm"

    def test_equal_after_normalizing(self):
        assert similarity("Topics/Getting_Started.htm", "topics/getting-started.htm") == 1.0

    def test_both_empty(self):
        assert similarity("", "") == 1.0

    def test_containment(self):
        assert similarity("install", "Topics/install.htm") == 0.8

    def test_edit_distance(self):
        # "abcd" vs "abxd": one substitution over four characters
        assert similarity("abcd", "abxd") == pytest.approx(0.75)

    def test_unrelated(self):
        assert similarity("abc", "xyz") == 0.0

    @pytest.mark.parametrize("value", PATHS)
    def test_reflexive(self, value):
        assert similarity(value, value) == 1.0

    @pytest.mark.parametrize("a", PATHS)
    @pytest.mark.parametrize("b", PATHS)
    def test_symmetric(self, a, b):
        assert similarity(a, b) == similarity(b, a)

    @pytest.mark.parametrize("a", PATHS)
    @pytest.mark.parametrize("b", PATHS)
    def test_bounded(self, a, b):
        assert 0.0 <= similarity(a, b) <= 1.0
