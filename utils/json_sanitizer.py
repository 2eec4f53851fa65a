#!/usr/bin/env python3
"""Recover the release notes JSON object from a free-form model answer."""
from __future__ import annotations

import json
import re
from typing import Any, Dict, Iterator, Optional

from pydantic import ValidationError

from utils.release_models import ReleaseNotesPayload


class JSONSanitizerError(Exception):
	def __init__(self, message: str, code: str = "SANITIZE_ERROR") -> None:
		super().__init__(message)
		self.code = code


_FENCE_RE = re.compile(r"```[a-zA-Z]*[ \t]*\n?")
_CONTROL_RE = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F]")
_TRAILING_COMMA_RE = re.compile(r",(\s*[}\]])")
_TYPOGRAPHIC_QUOTES = {"“": '"', "”": '"', "‘": "'", "’": "'"}

_decoder = json.JSONDecoder()


def clean_model_text(raw_text: str) -> str:
	"""Remove markdown fences and control characters around the answer."""
	return _CONTROL_RE.sub(" ", _FENCE_RE.sub("", raw_text or "")).strip()


def repair_json_text(text: str) -> str:
	"""Fix typographic quotes and trailing commas; never adds content."""
	for bad, good in _TYPOGRAPHIC_QUOTES.items():
		text = text.replace(bad, good)
	return _TRAILING_COMMA_RE.sub(r"\1", text)


def iter_json_objects(text: str) -> Iterator[Dict[str, Any]]:
	"""Yield every top-level JSON object embedded in `text`, left to right."""
	pos = text.find("{")
	while pos != -1:
		try:
			obj, end = _decoder.raw_decode(text, pos)
		except json.JSONDecodeError:
			pos = text.find("{", pos + 1)
			continue
		if isinstance(obj, dict):
			yield obj
		pos = text.find("{", end)


def find_release_notes_object(text: str) -> Optional[Dict[str, Any]]:
	"""Pick the object that looks like release notes, else the first one found."""
	first = None
	for obj in iter_json_objects(text):
		if "title" in obj and "summary" in obj:
			return obj
		if first is None:
			first = obj
	return first


def extract_and_validate_release_notes(raw_text: str) -> ReleaseNotesPayload:
	"""Pull the release notes JSON out of a model response and validate it.

	The text is decoded as-is first and only repaired when that fails, so
	quotes inside valid strings survive.

	Raises:
		JSONSanitizerError: code NO_JSON, JSON_DECODE or VALIDATION
	"""
	text = clean_model_text(raw_text)
	if "{" not in text:
		raise JSONSanitizerError("No JSON object found in model response", code="NO_JSON")

	data = find_release_notes_object(text)
	if data is None:
		data = find_release_notes_object(repair_json_text(text))
	if data is None:
		raise JSONSanitizerError("Model response contains no decodable JSON object", code="JSON_DECODE")

	# nulls mean "not provided", let the model defaults apply
	data = {k: v for k, v in data.items() if v is not None}
	try:
		return ReleaseNotesPayload.model_validate(data)
	except ValidationError as e:
		raise JSONSanitizerError(str(e), code="VALIDATION")
