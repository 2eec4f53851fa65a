#!/usr/bin/env python3
"""Line-level model of a Keep a Changelog document.

The document is split into three parts:

- preamble: everything before the first `## [` header (title, intro text,
  anything that does not parse as a version section)
- sections: one chunk per `## [<key>]` header, running up to the next one
- footer: the trailing block of `[label]: url` definitions and blank lines

Rendering joins the parts with one blank line between them, so a parse and
render pass normalizes spacing between sections but never touches their text.
"""
from __future__ import annotations

import re
from typing import List, Optional

SECTION_HEADER_RE = re.compile(r"^## \[([^\]]+)\]")
LINK_DEFINITION_RE = re.compile(r"^\[([^\]]+)\]:\s*(\S.*?)\s*$")
FENCE_RE = re.compile(r"^\s*(```|~~~)")

UNRELEASED_KEY = "Unreleased"


def strip_blank_edges(lines: List[str]) -> List[str]:
	start, end = 0, len(lines)
	while start < end and not lines[start].strip():
		start += 1
	while end > start and not lines[end - 1].strip():
		end -= 1
	return lines[start:end]


def section_key(line: str) -> Optional[str]:
	"""Return the bracketed key of a `## [<key>]` header line, or None."""
	match = SECTION_HEADER_RE.match(line)
	return match.group(1).strip() if match else None


def is_unreleased_key(key: Optional[str]) -> bool:
	return bool(key) and key.strip().lower() == UNRELEASED_KEY.lower()


class ChangelogSection:
	"""One `## [<key>]` section: the header line plus its body lines."""

	def __init__(self, key: str, lines: List[str]) -> None:
		self.key = key
		self.lines = lines

	@property
	def header(self) -> str:
		return self.lines[0] if self.lines else ""

	@property
	def body_lines(self) -> List[str]:
		return self.lines[1:]

	@property
	def is_unreleased(self) -> bool:
		return is_unreleased_key(self.key)

	def body(self) -> str:
		return "\n".join(strip_blank_edges(self.body_lines))

	def text(self) -> str:
		return "\n".join(strip_blank_edges(self.lines))

	@classmethod
	def from_text(cls, text: str) -> Optional["ChangelogSection"]:
		"""Build a section from a rendered fragment whose first non-blank line is a header."""
		lines = strip_blank_edges(text.splitlines())
		if not lines:
			return None
		key = section_key(lines[0])
		if key is None:
			return None
		return cls(key, lines)

	def __repr__(self) -> str:
		return f"ChangelogSection(key={self.key!r}, lines={len(self.lines)})"


class ChangelogDocument:
	def __init__(self, preamble: List[str], sections: List[ChangelogSection], footer: List[str]) -> None:
		self.preamble = preamble
		self.sections = sections
		self.footer = footer

	@classmethod
	def parse(cls, content: str) -> "ChangelogDocument":
		"""Split `content` into preamble, sections and footer.

		Headers inside fenced code blocks are ignored. Content without any
		version header is kept whole as preamble.
		"""
		lines = content.splitlines()
		preamble: List[str] = []
		sections: List[ChangelogSection] = []
		in_fence = False

		for line in lines:
			if FENCE_RE.match(line):
				in_fence = not in_fence
			key = None if in_fence else section_key(line)
			if key is not None:
				sections.append(ChangelogSection(key, [line]))
			elif sections:
				sections[-1].lines.append(line)
			else:
				preamble.append(line)

		footer: List[str] = []
		if sections:
			last = sections[-1].lines
			cut = len(last)
			while cut > 1 and (not last[cut - 1].strip() or LINK_DEFINITION_RE.match(last[cut - 1])):
				cut -= 1
			# a section reduced to its bare header keeps its own link lines
			if cut == 1 and any(LINK_DEFINITION_RE.match(l) for l in last[1:]):
				cut = len(last)
			footer = last[cut:]
			sections[-1].lines = last[:cut]

		return cls(preamble, sections, footer)

	def render(self) -> str:
		parts = ["\n".join(strip_blank_edges(self.preamble))]
		parts.extend(s.text() for s in self.sections)
		parts.append("\n".join(strip_blank_edges(self.footer)))
		parts = [p for p in parts if p]
		if not parts:
			return ""
		return "\n\n".join(parts) + "\n"

	def find(self, key: str) -> int:
		"""Index of the section whose key equals `key`, or -1."""
		for idx, section in enumerate(self.sections):
			if section.key == key:
				return idx
		return -1

	def unreleased_index(self) -> int:
		for idx, section in enumerate(self.sections):
			if section.is_unreleased:
				return idx
		return -1

	def version_sections(self) -> List[ChangelogSection]:
		return [s for s in self.sections if not s.is_unreleased]
