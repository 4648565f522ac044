from __future__ import annotations

import pytest

from wikiquiz.jobs.units import WorkUnit, count_words, derive_unit_key, split_words, target_question_count


def test_unit_key_is_stable_and_hex() -> None:
  first = derive_unit_key("naruto", "Characters", "Naruto Uzumaki", "Background")
  second = derive_unit_key("naruto", "Characters", "Naruto Uzumaki", "Background")
  assert first == second
  assert len(first) == 64
  int(first, 16)


def test_unit_key_separator_cannot_collide() -> None:
  assert derive_unit_key("a|b", "c", "d", "e") != derive_unit_key("a", "b|c", "d", "e")
  assert derive_unit_key("naruto", "Characters", "Itachi", "") != derive_unit_key("naruto", "Characters", "", "Itachi")


def test_unit_key_ignores_surrounding_whitespace_and_unicode_form() -> None:
  composed = derive_unit_key("pokemon", "individual", "Pok\u00e9mon", "Intro")
  decomposed = derive_unit_key("pokemon", "individual", "Poke\u0301mon ", "Intro")
  assert composed == decomposed


def test_unit_key_keeps_case_and_inner_whitespace() -> None:
  assert derive_unit_key("naruto", "Characters", "Naruto", "Intro") != derive_unit_key("naruto", "Characters", "naruto", "Intro")
  assert derive_unit_key("naruto", "Characters", "Rock Lee", "Intro") != derive_unit_key("naruto", "Characters", "Rock  Lee", "Intro")


def test_work_unit_key_matches_derivation() -> None:
  unit = WorkUnit(source_id="naruto", group_label="individual", locator="Kurama", sub_unit_label="Abilities", text="Tailed beast", word_count=2, target_question_count=1)
  assert unit.key == derive_unit_key("naruto", "individual", "Kurama", "Abilities")
  assert unit.is_empty is False


def test_blank_unit_is_empty() -> None:
  unit = WorkUnit(source_id="naruto", group_label="individual", locator="Kurama", sub_unit_label="Trivia", text="  \n ", word_count=0, target_question_count=1)
  assert unit.is_empty is True


def test_count_words_splits_on_any_whitespace() -> None:
  assert count_words("") == 0
  assert count_words("   ") == 0
  assert count_words("one  two\nthree\tfour") == 4


@pytest.mark.parametrize(
  ("words", "expected"),
  [
    (0, 1),
    (125, 1),
    (312, 2),
    (313, 3),
    (1249, 10),
    (5000, 10),
  ],
)
def test_target_question_count_rounds_and_clamps(words: int, expected: int) -> None:
  assert target_question_count(words, density_words=125, minimum=1, maximum=10) == expected


def test_target_question_count_rejects_zero_density() -> None:
  with pytest.raises(ValueError):
    target_question_count(100, density_words=0, minimum=1, maximum=10)


def _text(count: int) -> str:
  return " ".join(f"w{index}" for index in range(count))


def test_split_words_merges_short_tail() -> None:
  chunks = split_words(_text(1100), max_words=500, min_words=200)
  assert [count_words(chunk) for chunk in chunks] == [500, 600]


def test_split_words_keeps_long_enough_tail() -> None:
  chunks = split_words(_text(1250), max_words=500, min_words=200)
  assert [count_words(chunk) for chunk in chunks] == [500, 500, 250]


def test_split_words_drops_tail_that_would_overflow_merge_limit() -> None:
  chunks = split_words(_text(1400), max_words=500, min_words=450)
  assert [count_words(chunk) for chunk in chunks] == [500, 500]


def test_split_words_merges_tail_of_short_text() -> None:
  chunks = split_words(_text(650), max_words=500, min_words=200)
  assert [count_words(chunk) for chunk in chunks] == [650]


def test_split_words_short_text_is_single_chunk() -> None:
  assert split_words(_text(50), max_words=500, min_words=200) == [_text(50)]
  assert split_words("   ") == []
