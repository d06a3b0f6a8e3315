from quiz_engine.services.answer_normalizer import (
    extract_option_id,
    merge_answers,
    normalize_answers,
)


def test_bare_strings_and_numbers_become_strings():
    normalized = normalize_answers({"11": "2", "12": 3, "13": 4.0})

    assert normalized == {
        "11": {"selectedOptionId": "2"},
        "12": {"selectedOptionId": "3"},
        "13": {"selectedOptionId": "4"},
    }


def test_object_answers_use_selected_option_id_first():
    normalized = normalize_answers({
        "1": {"selectedOptionId": 2, "optionId": 4},
        "2": {"selectedOptionId": None, "option_id": "3"},
    })

    assert normalized["1"] == {"selectedOptionId": "2"}
    assert normalized["2"] == {"selectedOptionId": "3"}


def test_legacy_keys_and_first_value_fallback():
    normalized = normalize_answers({
        "1": {"optionId": "1"},
        "2": {"answer": 4},
        "3": {"choice": None, "picked": "2"},
    })

    assert normalized == {
        "1": {"selectedOptionId": "1"},
        "2": {"selectedOptionId": "4"},
        "3": {"selectedOptionId": "2"},
    }


def test_entries_without_a_value_are_dropped():
    normalized = normalize_answers({
        "1": None,
        "2": "",
        "3": "   ",
        "4": {},
        "5": {"selectedOptionId": None},
        "6": True,
        "7": [],
        "8": "1",
    })

    assert normalized == {"8": {"selectedOptionId": "1"}}


def test_question_ids_are_coerced_to_strings():
    assert normalize_answers({42: 1}) == {"42": {"selectedOptionId": "1"}}


def test_lists_yield_their_first_value():
    assert extract_option_id([None, 3, 4]) == "3"


def test_missing_answers_normalize_to_empty_mapping():
    assert normalize_answers(None) == {}
    assert normalize_answers({}) == {}


def test_normalization_does_not_mutate_input():
    raw = {"1": {"optionId": 2}}
    normalize_answers(raw)
    assert raw == {"1": {"optionId": 2}}


def test_merge_keeps_unmentioned_questions_and_overwrites_matching_ones():
    existing = {"1": {"selectedOptionId": "1"}, "2": {"selectedOptionId": "4"}}
    incoming = normalize_answers({"2": "3", "5": "1"})

    merged = merge_answers(existing, incoming)

    assert merged == {
        "1": {"selectedOptionId": "1"},
        "2": {"selectedOptionId": "3"},
        "5": {"selectedOptionId": "1"},
    }
    assert existing["2"] == {"selectedOptionId": "4"}


def test_merge_with_nothing_stored():
    assert merge_answers(None, {"1": {"selectedOptionId": "2"}}) == {"1": {"selectedOptionId": "2"}}
