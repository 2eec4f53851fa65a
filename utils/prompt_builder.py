#!/usr/bin/env python3
from __future__ import annotations

import os
from enum import Enum
from functools import lru_cache
from typing import Dict, List, Mapping

from utils.release_models import Release, ReleaseItem, ReleaseNotesPayload
from utils.schema_utils import compact_schema

PROMPTS_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "prompts")

SUPPORTED_LOCALES = ("en", "es")
DEFAULT_LOCALE = "en"


class PromptKind(str, Enum):
	RELEASE_NOTES = "release_notes"
	JSON_REPAIR = "json_repair"


_SECTION_HEADERS: Dict[str, Dict[str, str]] = {
	"en": {
		"breaking": "BREAKING CHANGES:",
		"features": "NEW FEATURES:",
		"fixes": "BUG FIXES:",
		"improvements": "IMPROVEMENTS:",
		"closed_issues": "CLOSED ISSUES:",
		"merged_prs": "MERGED PULL REQUESTS:",
		"contributors": "CONTRIBUTORS",
		"new_contributors": "New contributors:",
		"file_stats": "FILE STATISTICS:",
		"deps": "DEPENDENCY UPDATES:",
	},
	"es": {
		"breaking": "CAMBIOS QUE ROMPEN COMPATIBILIDAD:",
		"features": "NUEVAS FUNCIONALIDADES:",
		"fixes": "CORRECCIONES DE ERRORES:",
		"improvements": "MEJORAS:",
		"closed_issues": "ISSUES CERRADOS:",
		"merged_prs": "PULL REQUESTS INTEGRADOS:",
		"contributors": "CONTRIBUIDORES",
		"new_contributors": "Nuevos contribuidores:",
		"file_stats": "ESTADÍSTICAS DE ARCHIVOS:",
		"deps": "ACTUALIZACIONES DE DEPENDENCIAS:",
	},
}


def normalize_locale(locale: str | None) -> str:
	loc = (locale or DEFAULT_LOCALE).strip().lower()[:2]
	return loc if loc in SUPPORTED_LOCALES else DEFAULT_LOCALE


def render_template(template: str, mapping: Mapping[str, str]) -> str:
	"""Fill `{{ key }}` placeholders from `mapping`; unknown placeholders are left as-is."""
	text = template
	for key, value in mapping.items():
		text = text.replace(f"{{{{ {key} }}}}", str(value))
	return text


@lru_cache(maxsize=None)
def get_prompt_template(locale: str, kind: PromptKind) -> str:
	"""Load the template for `kind` in `locale` from the prompts directory.

	Unsupported locales fall back to English.
	"""
	loc = normalize_locale(locale)
	path = os.path.join(PROMPTS_DIR, f"{PromptKind(kind).value}.{loc}.prompt")
	with open(path, "r", encoding="utf-8") as f:
		return f.read()


def get_section_headers(locale: str) -> Dict[str, str]:
	return dict(_SECTION_HEADERS[normalize_locale(locale)])


def _item_line(item: ReleaseItem) -> str:
	scope = f"({item.scope})" if item.scope else ""
	pr = f" (#{item.pr_number})" if item.pr_number else ""
	return f"- {item.type}{scope}: {item.description}{pr}"


def _block(header: str, lines: List[str]) -> List[str]:
	return [header, *lines, ""]


def format_changes_for_prompt(release: Release, locale: str = DEFAULT_LOCALE) -> str:
	"""Plain-text digest of the release used as the model's input."""
	headers = get_section_headers(locale)
	out: List[str] = []

	for key, items in (
		("breaking", release.breaking),
		("features", release.features),
		("fixes", release.bug_fixes),
		("improvements", release.improvements),
	):
		if items:
			out += _block(headers[key], [_item_line(i) for i in items])

	if release.closed_issues:
		out += _block(headers["closed_issues"], [
			f"- #{i.number}: {i.title}" + (f" (by @{i.author})" if i.author else "")
			for i in release.closed_issues
		])

	if release.merged_prs:
		lines: List[str] = []
		for pr in release.merged_prs:
			lines.append(f"- #{pr.number}: {pr.title}" + (f" (by @{pr.author})" if pr.author else ""))
			first = pr.description.strip().split("\n")[0].strip() if pr.description else ""
			if first:
				lines.append(f"  Description: {first}")
		out += _block(headers["merged_prs"], lines)

	if release.contributors:
		lines = [f"- @{c}" for c in release.contributors]
		if release.new_contributors:
			lines.append(f"{headers['new_contributors']} {', '.join(release.new_contributors)}")
		out += _block(f"{headers['contributors']} ({len(release.contributors)} total):", lines)

	stats = release.file_stats
	if stats.files_changed > 0:
		lines = [
			f"- Files changed: {stats.files_changed}",
			f"- Insertions: +{stats.insertions}",
			f"- Deletions: -{stats.deletions}",
		]
		lines += [f"  - {f.path} (+{f.additions}/-{f.deletions})" for f in stats.top_files]
		out += _block(headers["file_stats"], lines)

	if release.dependencies:
		lines = []
		for dep in release.dependencies:
			if dep.type == "updated":
				lines.append(f"- {dep.name}: {dep.old_version} -> {dep.new_version}")
			elif dep.type == "added":
				lines.append(f"- Added: {dep.name} {dep.new_version}".rstrip())
			else:
				lines.append(f"- Removed: {dep.name} {dep.old_version}".rstrip())
		out += _block(headers["deps"], lines)

	# docs and other commits are context only
	for item in release.documentation + release.other:
		out.append(_item_line(item))

	return "\n".join(out).strip()


def build_release_notes_prompt(release: Release, *, locale: str = DEFAULT_LOCALE, owner: str = "", repo: str = "", release_date: str = "") -> str:
	template = get_prompt_template(locale, PromptKind.RELEASE_NOTES)
	mapping = {
		"repo": f"{owner}/{repo}" if owner and repo else "(unknown)",
		"previous_version": release.previous_version,
		"version": release.version,
		"version_bump": release.version_bump,
		"release_date": release_date,
		"changes": format_changes_for_prompt(release, locale) or "- none",
		"json_schema": compact_schema(ReleaseNotesPayload),
	}
	return render_template(template, mapping)


def build_json_repair_prompt(bad_json: str, error: str, *, locale: str = DEFAULT_LOCALE, max_chars: int = 20000) -> str:
	template = get_prompt_template(locale, PromptKind.JSON_REPAIR)
	mapping = {
		"json_schema": compact_schema(ReleaseNotesPayload),
		"error": error[:500],
		"bad_json": bad_json[:max_chars],
	}
	return render_template(template, mapping)
