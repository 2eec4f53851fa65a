#!/usr/bin/env python3
"""Merge release sections into CHANGELOG.md.

Every write goes through `atomic_write`, so a failed run leaves the previous
document on disk. Merging the same version twice replaces its section in
place instead of adding a second header.
"""
from __future__ import annotations

import logging
import os
import re
import stat
import tempfile
from datetime import date
from typing import Dict, List, Optional, Tuple

from configs.config import Config
from clients.git_client import GitClient, GitError
from utils.changelog_document import (
	FENCE_RE,
	LINK_DEFINITION_RE,
	UNRELEASED_KEY,
	ChangelogDocument,
	ChangelogSection,
	is_unreleased_key,
	strip_blank_edges,
)
from utils.release_models import Release, ReleaseNotes
from utils.version_resolver import BASELINE_VERSION, compare_versions, is_semver_tag

logger = logging.getLogger(__name__)

STANDARD_HEADER = (
	"# Changelog\n"
	"\n"
	"All notable changes to this project will be documented in this file.\n"
	"\n"
	"The format is based on [Keep a Changelog](https://keepachangelog.com/en/1.1.0/),\n"
	"and this project adheres to [Semantic Versioning](https://semver.org/spec/v2.0.0.html).\n"
)

HIGHLIGHTS_TITLE = "✨ Highlights"
BREAKING_TITLE = "⚠️ Breaking Changes"

PROVIDER_HOSTS: Dict[str, str] = {
	"github": "https://github.com",
	"gitlab": "https://gitlab.com",
}

_BULLET_PREFIX_RE = re.compile(r"^[-*]\s+")
_UNRELEASED_COMPARE_RE = re.compile(r"/compare/[^/\s]+\.\.\.HEAD\b")


def atomic_write(path: str, content: str) -> None:
	"""Write `content` to `path` through a temp file in the same directory."""
	dirname = os.path.dirname(os.path.abspath(path))
	mode = stat.S_IMODE(os.stat(path).st_mode) if os.path.exists(path) else 0o644
	tmp_fd, tmp_path = tempfile.mkstemp(dir=dirname, prefix=".tmp_", suffix=".md")
	try:
		with os.fdopen(tmp_fd, "w", encoding="utf-8") as f:
			f.write(content)
			f.flush()
			os.fsync(f.fileno())
		os.chmod(tmp_path, mode)
		os.replace(tmp_path, path)
	except BaseException:
		if os.path.exists(tmp_path):
			os.remove(tmp_path)
		raise


def read_changelog(path: str) -> str:
	with open(path, "r", encoding="utf-8") as f:
		return f.read()


def consolidate_link_definitions(content: str) -> str:
	"""Keep the first `[label]: url` definition per label and drop the rest.

	A dropped definition pointing at a different URL is logged, the first one
	still wins. Lines inside fenced code blocks are left alone.
	"""
	seen: Dict[str, str] = {}
	out: List[str] = []
	dropped = False
	in_fence = False

	for line in content.split("\n"):
		if FENCE_RE.match(line):
			in_fence = not in_fence
		match = None if in_fence else LINK_DEFINITION_RE.match(line)
		if match:
			label, url = match.group(1).strip(), match.group(2)
			if label in seen:
				if seen[label] != url:
					logger.warning(f"Conflicting link definition for [{label}]: keeping {seen[label]}, dropping {url}")
				dropped = True
				continue
			seen[label] = url
		# collapse the blank run left behind by a dropped line
		if dropped and not line.strip() and out and not out[-1].strip():
			continue
		if line.strip():
			dropped = False
		out.append(line)

	return "\n".join(out)


def _defines_link(line: str, label: str) -> bool:
	match = LINK_DEFINITION_RE.match(line)
	return bool(match) and match.group(1).strip().lower() == label.lower()


def _split_own_links(section: ChangelogSection) -> Tuple[str, List[str]]:
	"""Body text of `section` without the link definitions for its own label, and those lines."""
	own = [line for line in section.body_lines if _defines_link(line, section.key)]
	rest = [line for line in section.body_lines if line not in own]
	return "\n".join(strip_blank_edges(rest)).strip(), own


def parse_unreleased_section(content: str) -> str:
	"""Return the staged text under `## [Unreleased]`, stripped, or "" if there is none."""
	doc = ChangelogDocument.parse(content)
	idx = doc.unreleased_index()
	if idx < 0:
		return ""
	staged, _ = _split_own_links(doc.sections[idx])
	return staged


def _insertion_index(doc: ChangelogDocument, key: str) -> int:
	"""Position for a new section so Unreleased stays first and versions stay descending."""
	if is_unreleased_key(key):
		return 0
	unreleased = doc.unreleased_index()
	start = unreleased + 1 if unreleased >= 0 else 0
	if not is_semver_tag(key):
		return start
	for idx in range(start, len(doc.sections)):
		section = doc.sections[idx]
		if section.is_unreleased or not is_semver_tag(section.key):
			continue
		if compare_versions(section.key, key) < 0:
			return idx
	return len(doc.sections)


def merge_fragment(content: str, fragment: str) -> str:
	"""Merge one `## [<version>]` fragment into `content` and return the new document.

	An existing section with the same key is replaced in place; otherwise the
	fragment is inserted after Unreleased, ahead of the first older version.

	Raises:
		ValueError: If `fragment` does not start with a `## [<version>]` header
	"""
	section = ChangelogSection.from_text(fragment)
	if section is None:
		raise ValueError("Changelog fragment must start with a '## [<version>]' header")

	doc = ChangelogDocument.parse(content)
	idx = doc.find(section.key)
	if idx >= 0:
		logger.info(f"Replacing existing changelog section [{section.key}]")
		doc.sections[idx] = section
	else:
		doc.sections.insert(_insertion_index(doc, section.key), section)

	return consolidate_link_definitions(doc.render())


def _split_fragment_head(fragment: str) -> Tuple[List[str], List[str]]:
	"""Split a fragment into its header and link lines and the rest of its body."""
	lines = fragment.strip("\n").split("\n")
	pos = 1
	while pos < len(lines) and (not lines[pos].strip() or LINK_DEFINITION_RE.match(lines[pos])):
		pos += 1
	head = lines[:pos]
	while len(head) > 1 and not head[-1].strip():
		head.pop()
	return head, lines[pos:]

def _bullets(items: List[str]) -> List[str]:
	out: List[str] = []
	for item in items:
		text = _BULLET_PREFIX_RE.sub("", item.strip())
		if text:
			out.append(f"- {text}")
	return out


class ChangelogMerger:
	"""Renders release sections and merges them into the changelog file."""

	def __init__(self, git: Optional[GitClient] = None, repo_info: Optional[Tuple[str, str, str]] = None):
		"""Initialize the merger.

		Args:
			git: History reader used for tag dates and repository coordinates
			repo_info: (owner, repo, provider); read from git when omitted
		"""
		self.git = git or GitClient()
		self._repo_info = repo_info

	# -------- Fragment rendering --------
	def _get_repo_info(self) -> Optional[Tuple[str, str, str]]:
		if self._repo_info is None:
			try:
				self._repo_info = self.git.get_repo_info()
			except GitError as e:
				logger.debug(f"Repository coordinates unavailable, skipping comparison link: {e}")
				return None
		return self._repo_info

	def _resolve_date(self, version: str) -> str:
		try:
			tag_date = self.git.get_tag_date(version)
			if tag_date:
				return tag_date
		except Exception as e:
			logger.debug(f"Tag date for {version} unavailable ({e}), using today")
		return date.today().isoformat()

	def comparison_link(self, release: Release) -> Optional[str]:
		"""URL comparing the previous version with `release.version`, or None."""
		info = self._get_repo_info()
		if not info:
			return None
		owner, repo, provider = info
		host = PROVIDER_HOSTS.get(provider)
		if not host or not owner or not repo:
			return None
		base = f"{host}/{owner}/{repo}"
		previous = release.previous_version
		if not previous or previous == BASELINE_VERSION:
			return f"{base}/releases/tag/{release.version}"
		return f"{base}/compare/{previous}...{release.version}"

	def build_changelog_from_notes(self, release: Release, notes: ReleaseNotes) -> str:
		"""Render one `## [<version>] - <date>` section from synthesized notes."""
		lines: List[str] = [f"## [{release.version}] - {self._resolve_date(release.version)}", ""]

		link = self.comparison_link(release)
		if link:
			lines.extend([f"[{release.version}]: {link}", ""])

		if notes.summary.strip():
			lines.extend([notes.summary.strip(), ""])

		if notes.sections:
			for section in notes.sections:
				bullets = _bullets(section.items)
				if not bullets:
					continue
				lines.extend([f"### {section.title}", ""] + bullets + [""])
		elif notes.highlights:
			lines.extend([f"### {HIGHLIGHTS_TITLE}", ""] + _bullets(notes.highlights) + [""])

		if notes.breaking_changes:
			lines.extend([f"### {BREAKING_TITLE}", ""] + _bullets(notes.breaking_changes) + [""])

		return "\n".join(lines).rstrip("\n") + "\n"

	# The CLI preview shows exactly what would be merged
	build_changelog_preview = build_changelog_from_notes

	# -------- Document operations --------
	def prepend_to_changelog(self, path: str, fragment: str) -> None:
		"""Merge `fragment` into the changelog at `path`, creating the file if needed."""
		content = read_changelog(path) if os.path.exists(path) else STANDARD_HEADER
		atomic_write(path, merge_fragment(content, fragment))
		logger.info(f"✓ Changelog updated: {path}")

	def ensure_unreleased_section(self, path: str) -> bool:
		"""Make sure `path` has an `## [Unreleased]` section. Returns True if the file was written."""
		if not os.path.exists(path):
			atomic_write(path, STANDARD_HEADER + f"\n## [{UNRELEASED_KEY}]\n")
			logger.info(f"✓ Created {path} with an empty Unreleased section")
			return True

		doc = ChangelogDocument.parse(read_changelog(path))
		if doc.unreleased_index() >= 0:
			logger.debug(f"{path} already has an Unreleased section")
			return False

		if not "\n".join(doc.preamble).strip():
			doc.preamble = STANDARD_HEADER.splitlines()
		doc.sections.insert(0, ChangelogSection(UNRELEASED_KEY, [f"## [{UNRELEASED_KEY}]"]))
		atomic_write(path, doc.render())
		logger.info(f"✓ Added Unreleased section to {path}")
		return True

	def move_unreleased_to_version(self, path: str, release: Release, notes: ReleaseNotes) -> bool:
		"""Fold staged Unreleased content into the new version's section.

		The staged text goes right after the version header and link lines,
		ahead of the synthesized content, and Unreleased is left empty.
		Returns False without writing when the file is missing or nothing is staged.
		"""
		if not os.path.exists(path):
			return False

		doc = ChangelogDocument.parse(read_changelog(path))
		idx = doc.unreleased_index()
		if idx < 0:
			return False
		unreleased = doc.sections[idx]
		# the Unreleased compare link stays with Unreleased
		staged, own_links = _split_own_links(unreleased)
		if not staged:
			logger.debug("Unreleased section is empty, nothing to move")
			return False

		head, rest = _split_fragment_head(self.build_changelog_from_notes(release, notes))
		parts = ["\n".join(head), staged]
		if "\n".join(rest).strip():
			parts.append("\n".join(rest).strip("\n"))
		fragment = "\n\n".join(parts) + "\n"

		own_links = [_UNRELEASED_COMPARE_RE.sub(f"/compare/{release.version}...HEAD", line) for line in own_links]
		doc.sections[idx] = ChangelogSection(unreleased.key, ([unreleased.header, ""] + own_links) if own_links else [unreleased.header])

		atomic_write(path, merge_fragment(doc.render(), fragment))
		logger.info(f"✓ Moved Unreleased changes into {release.version} in {path}")
		return True

	def update_local_changelog(self, release: Release, notes: ReleaseNotes, path: Optional[str] = None) -> str:
		"""Write the release section for `release` into the changelog and return its path."""
		path = path or Config.get_changelog_config()["path"]
		if self.move_unreleased_to_version(path, release, notes):
			return path
		self.prepend_to_changelog(path, self.build_changelog_from_notes(release, notes))
		return path
