#!/usr/bin/env python3
"""Release notes synthesis: AI delegation with a deterministic fallback."""
from __future__ import annotations

import logging
from typing import List, Optional, Protocol, Tuple

from utils.release_models import Release, ReleaseItem, ReleaseNotes, ReleaseNotesSection

logger = logging.getLogger(__name__)

# Fixed rendering order for the fallback changelog
FALLBACK_SECTIONS: Tuple[Tuple[str, str], ...] = (
	("breaking", "⚠️ BREAKING CHANGES"),
	("features", "✨ New Features"),
	("bug_fixes", "🐛 Bug Fixes"),
	("improvements", "🔧 Improvements"),
	("documentation", "📚 Documentation"),
)


class NotesGenerator(Protocol):
	def generate_notes(self, release: Release) -> ReleaseNotes: ...


def format_release_item(item: ReleaseItem) -> str:
	"""Render `[**scope**: ]description[ (#PR)]` without the bullet marker."""
	text = ""
	if item.scope:
		text += f"**{item.scope}**: "
	text += item.description
	if item.pr_number:
		text += f" (#{item.pr_number})"
	return text


def build_fallback_sections(release: Release) -> List[ReleaseNotesSection]:
	sections: List[ReleaseNotesSection] = []
	for attr, title in FALLBACK_SECTIONS:
		items: List[ReleaseItem] = getattr(release, attr)
		if not items:
			continue
		sections.append(ReleaseNotesSection(title=title, items=[format_release_item(i) for i in items]))
	return sections


def build_changelog(release: Release) -> str:
	"""Markdown changelog built straight from the classified buckets."""
	out_lines: List[str] = [f"## {release.version}", ""]
	for section in build_fallback_sections(release):
		out_lines.append(f"### {section.title}")
		out_lines.append("")
		out_lines.extend(f"- {text}" for text in section.items)
		out_lines.append("")
	return "\n".join(out_lines)


def generate_basic_notes(release: Release) -> ReleaseNotes:
	"""Deterministic notes used when no AI generator is configured."""
	summary = f"This release includes {len(release.features)} new features, {len(release.bug_fixes)} bug fixes"
	if release.breaking:
		summary += f" and {len(release.breaking)} breaking changes"
	summary += "."

	return ReleaseNotes(
		title=f"Version {release.version}",
		summary=summary,
		highlights=[],
		sections=build_fallback_sections(release),
		changelog=build_changelog(release),
		recommended=release.version_bump,
	)


def generate_release_notes(release: Release, generator: Optional[NotesGenerator] = None) -> ReleaseNotes:
	"""Produce notes for `release`, delegating to `generator` when one is configured.

	Generator errors propagate unchanged.
	"""
	logger.info(f"Generating release notes for {release.version} (previous: {release.previous_version})")
	if generator is None:
		logger.debug("No AI generator configured, using basic notes")
		return generate_basic_notes(release)
	return generator.generate_notes(release)
