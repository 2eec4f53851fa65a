#!/usr/bin/env python3
"""Read-only quality checks for CHANGELOG.md version sections."""
from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import List, Optional

from configs.config import Config
from utils.changelog_document import LINK_DEFINITION_RE, ChangelogDocument, ChangelogSection
from utils.release_models import ChangelogWarning

logger = logging.getLogger(__name__)

_HEADER_DATE_RE = re.compile(r"^## \[[^\]]+\]\s*-\s*(\S+)")
_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def _link_defined(content: str, version: str) -> bool:
	return bool(re.search(rf"^\[{re.escape(version)}\]:\s*\S", content, re.MULTILINE))


def _check_date(section: ChangelogSection) -> Optional[ChangelogWarning]:
	match = _HEADER_DATE_RE.match(section.header)
	if not match:
		return ChangelogWarning(
			type="missing_date",
			version=section.key,
			message=f"Version {section.key} is missing a date (expected '## [{section.key}] - YYYY-MM-DD')",
		)
	raw = match.group(1)
	try:
		if not _ISO_DATE_RE.match(raw):
			raise ValueError(raw)
		datetime.strptime(raw, "%Y-%m-%d")
	except ValueError:
		return ChangelogWarning(
			type="missing_date",
			version=section.key,
			message=f"Version {section.key} has date '{raw}' which is not in ISO 8601 format (YYYY-MM-DD)",
		)
	return None


def _content_without_links(section: ChangelogSection) -> str:
	kept = []
	for line in section.body_lines:
		match = LINK_DEFINITION_RE.match(line)
		if match and match.group(1).strip() == section.key:
			continue
		kept.append(line)
	return "\n".join(kept).strip()


def _check_section(section: ChangelogSection, document: str, min_chars: int) -> List[ChangelogWarning]:
	warnings: List[ChangelogWarning] = []
	version = section.key

	date_warning = _check_date(section)
	if date_warning:
		warnings.append(date_warning)

	if not _link_defined(document, version):
		warnings.append(ChangelogWarning(
			type="missing_link",
			version=version,
			message=f"Version {version} is missing a comparison link ([{version}]: <url>)",
		))

	if not any(line.startswith("### ") for line in section.body_lines):
		warnings.append(ChangelogWarning(
			type="no_sections",
			version=version,
			message=f"Version {version} has no sections (expected '### ' subheadings)",
		))

	body = _content_without_links(section)
	if len(body) < min_chars:
		warnings.append(ChangelogWarning(
			type="short_content",
			version=version,
			message=f"Version {version} has very short content ({len(body)} chars, minimum {min_chars})",
		))

	return warnings


def validate_changelog_entry(content: str, version: str, min_chars: Optional[int] = None) -> List[ChangelogWarning]:
	"""Check the `version` section of `content`.

	`content` may be a whole changelog or a single section. Returns an empty
	list when no section with that version exists.
	"""
	if min_chars is None:
		min_chars = Config.get_changelog_config()["min_content_chars"]
	doc = ChangelogDocument.parse(content)
	idx = doc.find(version)
	if idx < 0:
		logger.debug(f"No section for {version} found, nothing to validate")
		return []
	section = doc.sections[idx]
	if section.is_unreleased:
		return []
	return _check_section(section, content, min_chars)


def validate_changelog(path: str, min_chars: Optional[int] = None) -> List[ChangelogWarning]:
	"""Audit every released version in the changelog at `path`.

	Raises:
		OSError: If the file cannot be read
	"""
	if min_chars is None:
		min_chars = Config.get_changelog_config()["min_content_chars"]
	with open(path, "r", encoding="utf-8") as f:
		content = f.read()

	doc = ChangelogDocument.parse(content)
	warnings: List[ChangelogWarning] = []
	for section in doc.version_sections():
		warnings.extend(_check_section(section, content, min_chars))

	logger.info(f"Validated {len(doc.version_sections())} changelog entries: {len(warnings)} warnings")
	return warnings
