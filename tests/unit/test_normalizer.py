from __future__ import annotations

import json

import pytest

from wikiquiz.ai.normalizer import GeneratedQuestion, normalize
from wikiquiz.errors import SchemaViolation

OPTIONS = ["Naruto", "Sasuke", "Sakura", "Kakashi"]


def _payload(**question: object) -> dict[str, object]:
  item: dict[str, object] = {"question": "Who is Team 7's leader?", "options": list(OPTIONS), "correctAnswerIndex": 3}
  item.update(question)
  return {"questions": [item]}


def test_tool_call_arguments_are_used_directly() -> None:
  questions = normalize(_payload())
  assert questions == [GeneratedQuestion("Who is Team 7's leader?", ("Naruto", "Sasuke", "Sakura", "Kakashi"), 3)]
  assert questions[0].as_dict() == {"question": "Who is Team 7's leader?", "options": OPTIONS, "correctAnswerIndex": 3}


def test_json_string_is_parsed() -> None:
  questions = normalize(json.dumps(_payload()))
  assert questions[0].correct_answer_index == 3
  assert questions[0].repaired is False


def test_bare_array_and_single_object_are_accepted() -> None:
  item = _payload()["questions"][0]  # type: ignore[index]
  assert len(normalize([item, item])) == 2
  assert len(normalize(item)) == 1


def test_json_embedded_in_prose_is_extracted() -> None:
  raw = f"Sure! Here are your questions: {json.dumps(_payload())} Let me know if you need more."
  assert normalize(raw)[0].options[3] == "Kakashi"


def test_markdown_fence_is_stripped() -> None:
  raw = "```json\n" + json.dumps(_payload(), indent=2) + "\n```"
  assert normalize(raw)[0].question_text == "Who is Team 7's leader?"


def test_trailing_commas_are_repaired() -> None:
  raw = '{"questions": [{"question": "Who?", "options": ["Naruto", "Sasuke", "Sakura", "Kakashi",], "correctAnswerIndex": 1,},]}'
  assert normalize(raw)[0].correct_answer_index == 1


def test_wrapped_text_payload_is_unwrapped() -> None:
  assert normalize({"content": json.dumps(_payload())})[0].correct_answer_index == 3


def test_alternative_field_names_are_accepted() -> None:
  raw = {"questions": [{"questionText": "Who?", "choices": OPTIONS, "correct_answer": 1}]}
  question = normalize(raw)[0]
  assert question.question_text == "Who?"
  assert question.correct_answer_index == 1
  assert question.repaired is False


def test_answer_given_as_option_text_is_repaired() -> None:
  question = normalize(_payload(correctAnswerIndex="Sakura"))[0]
  assert question.correct_answer_index == 2
  assert question.repaired is True


def test_answer_matching_ignores_separators_and_case() -> None:
  raw = {"questions": [{"question": "What year?", "options": ["1,999", "2000", "2001", "2002"], "correctAnswerIndex": "1999"}]}
  assert normalize(raw)[0].correct_answer_index == 0
  assert normalize(_payload(correctAnswerIndex="kakashi hatake"))[0].correct_answer_index == 3


def test_answer_given_as_letter_or_digit_string_is_repaired() -> None:
  assert normalize(_payload(correctAnswerIndex="B"))[0].correct_answer_index == 1
  assert normalize(_payload(correctAnswerIndex="(d)"))[0].correct_answer_index == 3
  assert normalize(_payload(correctAnswerIndex="2"))[0].correct_answer_index == 2


def test_letter_answer_is_not_matched_inside_option_text() -> None:
  raw = {"questions": [{"question": "Who led Root?", "options": ["Madara", "Obito", "Kabuto", "Danzo"], "correctAnswer": "D"}]}
  question = normalize(raw)[0]
  assert question.correct_answer_index == 3
  assert question.repaired is True
  assert normalize(_payload(correctAnswerIndex="a"))[0].correct_answer_index == 0


def test_exact_option_text_wins_over_position() -> None:
  raw = {"questions": [{"question": "How many tails?", "options": ["7", "9", "1", "10"], "correctAnswerIndex": "1"}]}
  assert normalize(raw)[0].correct_answer_index == 2
  raw = {"questions": [{"question": "Which gate?", "options": ["A", "B", "C", "D"], "correctAnswer": "C"}]}
  assert normalize(raw)[0].correct_answer_index == 2


def test_integral_float_index_is_accepted() -> None:
  question = normalize(_payload(correctAnswerIndex=1.0))[0]
  assert question.correct_answer_index == 1
  assert question.repaired is False


def test_unresolvable_index_defaults_to_zero() -> None:
  for value in (7, "Jiraiya", None, True):
    question = normalize(_payload(correctAnswerIndex=value))[0]
    assert question.correct_answer_index == 0
    assert question.repaired is True


def test_numeric_options_are_stringified() -> None:
  raw = {"questions": [{"question": "How many tails?", "options": [1, 7, 9, 10], "correctAnswerIndex": 2}]}
  assert normalize(raw)[0].options == ("1", "7", "9", "10")


@pytest.mark.parametrize(
  ("raw", "message"),
  [
    ({"questions": []}, "Provider output does not contain a question array."),
    ("no json here", "Provider output does not contain a question array."),
    (None, "Provider output does not contain a question array."),
    ({"questions": ["just text"]}, "Question 1 is not an object."),
    (_payload(question="  "), "Question 1 has no question text."),
    (_payload(options="Naruto"), "Question 1 has no options array."),
    (_payload(options=["Naruto", "Sasuke", "Sakura"]), "Question 1 has 3 options; expected 4."),
    (_payload(options=["Naruto", "Sasuke", "Sakura", " "]), "Question 1 has an empty option."),
    (_payload(options=["Naruto", "Sasuke", "Sakura", {"nested": True}]), "Question 1 has no options array."),
  ],
)
def test_invalid_output_raises_schema_violation(raw: object, message: str) -> None:
  with pytest.raises(SchemaViolation) as exc_info:
    normalize(raw)
  assert str(exc_info.value) == message
