from __future__ import annotations

from wikiquiz.ai.json_parser import extract_json_block, strip_json_fences, strip_trailing_commas, try_parse_json


def test_try_parse_json_returns_none_on_invalid_input() -> None:
  assert try_parse_json('{"a": 1}') == {"a": 1}
  assert try_parse_json("{'a': 1}") is None
  assert try_parse_json("") is None


def test_extract_json_block_finds_first_balanced_object() -> None:
  raw = 'prefix {"a": {"b": [1, 2]}} trailing {"c": 3}'
  assert extract_json_block(raw) == '{"a": {"b": [1, 2]}}'


def test_extract_json_block_ignores_brackets_inside_strings() -> None:
  raw = 'text {"q": "what is } or ] \\" here?"} more'
  assert extract_json_block(raw) == '{"q": "what is } or ] \\" here?"}'


def test_extract_json_block_handles_arrays_and_mismatches() -> None:
  assert extract_json_block("answer: [1, [2, 3]]") == "[1, [2, 3]]"
  assert extract_json_block('{"a": [1, 2}') is None
  assert extract_json_block('{"a": 1') is None
  assert extract_json_block("no json") is None


def test_strip_json_fences() -> None:
  assert strip_json_fences('```json\n{"a": 1}\n```') == '{"a": 1}'
  assert strip_json_fences('Result:\n```\n[1]\n```\nDone') == "[1]"
  assert strip_json_fences('```json {"a": 1}') == '{"a": 1}'


def test_strip_trailing_commas() -> None:
  assert strip_trailing_commas('{"a": [1, 2, ], "b": 3,\n}') == '{"a": [1, 2], "b": 3}'
