import pytest

from voicebridge.backend.text_alignment import (
    calculate_accuracy,
    compare_words,
    format_clock,
    levenshtein_distance,
    tokenize,
)


@pytest.mark.parametrize(
    "first,second,expected",
    [
        ("", "", 0),
        ("kitten", "sitting", 3),
        ("flaw", "lawn", 2),
        ("same", "same", 0),
        ("", "abc", 3),
    ],
)
def test_levenshtein_distance(first, second, expected):
    assert levenshtein_distance(first, second) == expected


def test_tokenize_strips_punctuation_and_case():
    assert tokenize('  Hello, World! "Quoted"; ok:  ') == ["hello", "world", "quoted", "ok"]
    assert tokenize(" ... ") == []


def test_calculate_accuracy_is_positional():
    assert calculate_accuracy("the quick brown fox", "The quick brown fox.") == 100.0
    assert calculate_accuracy("the quick fox", "the quick brown fox") == 50.0
    assert calculate_accuracy("", "") == 0.0
    assert calculate_accuracy("", "hello") == 0.0


def test_compare_words_marks_each_position():
    result = compare_words("the quack brown fox jumps", "the quick brown fox")
    assert result == [
        {"word": "the", "status": "correct"},
        {"word": "quick", "status": "incorrect", "transcribedWord": "quack"},
        {"word": "brown", "status": "correct"},
        {"word": "fox", "status": "correct"},
        {"word": "jumps", "status": "extra"},
    ]


def test_compare_words_reports_missing_words():
    result = compare_words("she sells", "she sells sea shells")
    assert [item["status"] for item in result] == ["correct", "correct", "missing", "missing"]
    assert result[-1]["word"] == "shells"


def test_format_clock():
    assert format_clock(0) == "0:00"
    assert format_clock(65) == "1:05"
    assert format_clock(600.9) == "10:00"
    assert format_clock(None) == "0:00"
