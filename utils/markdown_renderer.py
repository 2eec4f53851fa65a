#!/usr/bin/env python3
from __future__ import annotations

from typing import List

from utils.release_models import ReleaseNotes


def bullet_lines(lines: List[str]) -> List[str]:
	out: List[str] = []
	for line in lines or []:
		text = str(line).replace("\r", " ").replace("\n", " ").strip()
		if text.startswith("- "):
			text = text[2:]
		if text:
			out.append(f"- {text}")
	return out


def render_release_body(notes: ReleaseNotes) -> str:
	"""Markdown body for a hosted release page.

	Sections win over the legacy highlights list, breaking changes and links
	close the body.
	"""
	out: List[str] = []
	if notes.title:
		out += [f"# {notes.title}", ""]
	if notes.summary:
		out += [notes.summary.strip(), ""]

	if notes.sections:
		for section in notes.sections:
			items = bullet_lines(section.items)
			if items:
				out += [f"## {section.title}", "", *items, ""]
	elif notes.highlights:
		out += ["## ✨ Highlights", "", *bullet_lines(notes.highlights), ""]
	elif notes.changelog:
		out += [notes.changelog.strip(), ""]

	if notes.breaking_changes:
		out += ["## ⚠️ Breaking Changes", "", *bullet_lines(notes.breaking_changes), ""]

	for label, value in notes.links.items():
		out.append(f"**{label}:** {value}")

	return "\n".join(out).strip() + "\n"
