import pytest

from mirsinn.domain.dedup import CandidateKeys, ExclusionSet, candidate_keys, validate_payload
from mirsinn.domain.errors import PayloadValidationError
from mirsinn.domain.models import RecentArticle
from mirsinn.domain.text import (
    LocalizedText,
    PlainText,
    as_text,
    normalize_language,
    normalize_text,
    question_signature,
    truncate_words,
)


@pytest.mark.parametrize(
    "value, expected",
    [
        ("Plain", "Plain"),
        ({"fr": "Bonjour", "lb": "Moien"}, "Moien"),
        ({"en": "Hello", "de": "Hallo"}, "Hallo"),
        ({"en": "Hello", "lb": ""}, "Hello"),
        ({"pt": "Olá"}, "Olá"),
        ({"lb": 3}, ""),
        (None, ""),
        (42, ""),
    ],
)
def test_normalize_text_prefers_luxembourgish(value, expected):
    assert normalize_text(value) == expected


def test_as_text_lifts_raw_values():
    assert as_text("x") == PlainText("x")
    assert as_text({"lb": "a", "n": 1}) == LocalizedText({"lb": "a"})
    assert as_text(["a"]) is None


def test_question_signature_is_language_ordered_and_case_folded():
    question = {"en": " Should it? ", "fr": "Faut-il ?", "lb": "Soll et?"}

    assert question_signature(question) == "soll et?|faut-il ?|should it?"
    assert question_signature("  Soll ET? ") == "soll et?"
    assert question_signature({"de": "   "}) == ""
    assert question_signature(None) == ""


def test_normalize_language_defaults_to_lb():
    assert normalize_language("FR") == "fr"
    assert normalize_language("pt") == "lb"
    assert normalize_language(None) == "lb"


def test_truncate_words():
    assert truncate_words("one two  three", 2) == "one two"
    assert truncate_words(None, 5) == ""


def test_candidate_keys_are_trimmed_and_lowercased():
    payload = {
        "article": {"title": "  Big News ", "url": "HTTPS://Site.lu/A "},
        "question": {"lb": "Jo?"},
    }

    assert candidate_keys(payload) == CandidateKeys(url="https://site.lu/a", title="big news", signature="jo?")


def test_candidate_keys_tolerate_missing_article():
    assert candidate_keys({"question": "Q?"}) == CandidateKeys(url="", title="", signature="q?")


def test_exclusion_set_matches_on_any_key():
    exclusion = ExclusionSet.from_recent(
        [RecentArticle(date_key="02-19-2025", title="Old Title", url="https://site.lu/old")]
    )

    assert exclusion.is_duplicate(CandidateKeys(url="https://site.lu/old", title="", signature=""))
    assert exclusion.is_duplicate(CandidateKeys(url="", title="old title", signature=""))
    assert not exclusion.is_duplicate(CandidateKeys(url="https://site.lu/new", title="new", signature="q?"))

    exclusion.add(CandidateKeys(url="https://site.lu/new", title="new", signature="q?"))
    assert exclusion.is_duplicate(CandidateKeys(url="", title="", signature="q?"))
    assert exclusion.sizes() == (2, 2, 1)


def test_empty_keys_never_match():
    exclusion = ExclusionSet()
    exclusion.add(CandidateKeys(url="", title="", signature=""))

    assert exclusion.sizes() == (0, 0, 0)
    assert not exclusion.is_duplicate(CandidateKeys(url="", title="", signature=""))


@pytest.mark.parametrize(
    "payload",
    [
        None,
        [],
        {"options": [{"label": "Yes"}]},
        {"question": "   ", "options": [{"label": "Yes"}]},
        {"question": "Q?"},
        {"question": "Q?", "options": []},
        {"question": "Q?", "options": "yes/no"},
        {"question": "Q?", "options": ["Yes", "No"]},
        {"question": "Q?", "options": [{"id": "a", "label": "Yes"}, {"id": "b"}]},
        {"question": "Q?", "options": [{"label": "Yes"}]},
        {"question": "Q?", "options": [{"label": f"Option {n}"} for n in range(6)]},
    ],
)
def test_validate_payload_rejects_unusable_payloads(payload):
    with pytest.raises(PayloadValidationError):
        validate_payload(payload)


def test_validate_payload_accepts_minimal_payload():
    payload = {"question": {"fr": "Q ?"}, "options": [{"label": {"en": "Yes"}}, {"label": "No"}]}

    assert validate_payload(payload) is payload


def test_validate_payload_accepts_up_to_four_options():
    payload = {"question": "Q?", "options": [{"label": f"Option {n}"} for n in range(4)]}

    assert validate_payload(payload) is payload
