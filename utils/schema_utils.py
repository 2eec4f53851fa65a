#!/usr/bin/env python3
import json
from typing import Type
from pydantic import BaseModel


def to_json_schema(model_cls: Type[BaseModel]) -> dict:
	"""Return JSON Schema for a Pydantic v2 model class."""
	return model_cls.model_json_schema()


def compact_schema(model_cls: Type[BaseModel]) -> str:
	"""Schema serialized without whitespace, ready to embed in a prompt."""
	return json.dumps(to_json_schema(model_cls), separators=(",", ":"), ensure_ascii=False)
