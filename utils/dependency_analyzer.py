#!/usr/bin/env python3
"""Dependency changes between two refs, read from the manifests in the repository.

Each analyzer knows one manifest format and turns its content into
{name: (version, is_direct)}. The two snapshots are then diffed into
DependencyChange entries.
"""
from __future__ import annotations

import json
import logging
import re
from typing import Dict, List, Optional, Protocol, Tuple

from utils.release_models import ChangeSeverity, DependencyChange

logger = logging.getLogger(__name__)

Snapshot = Dict[str, Tuple[str, bool]]

_NUMERIC_VERSION_RE = re.compile(r"v?(\d+)(?:\.(\d+))?(?:\.(\d+))?")


class FileSource(Protocol):
	def get_file_at_ref(self, ref: str, path: str) -> Optional[str]: ...


def change_severity(old_version: str, new_version: str) -> ChangeSeverity:
	"""Classify an upgrade by the highest semver component that changed; downgrades are "unknown"."""
	old = _NUMERIC_VERSION_RE.search(old_version or "")
	new = _NUMERIC_VERSION_RE.search(new_version or "")
	if not old or not new or None in old.groups() or None in new.groups():
		return "unknown"
	old_parts = tuple(int(p) for p in old.groups())
	new_parts = tuple(int(p) for p in new.groups())
	if new_parts <= old_parts:
		return "unknown"
	if new_parts[0] != old_parts[0]:
		return "major"
	if new_parts[1] != old_parts[1]:
		return "minor"
	return "patch"


class ManifestAnalyzer:
	manager = ""
	manifest = ""

	def parse(self, content: str) -> Snapshot:
		raise NotImplementedError

	def analyze(self, source: FileSource, previous_ref: str, current_ref: str) -> List[DependencyChange]:
		new_content = source.get_file_at_ref(current_ref, self.manifest)
		if new_content is None:
			return []
		old_content = source.get_file_at_ref(previous_ref, self.manifest) or ""
		return diff_snapshots(self.parse(old_content), self.parse(new_content), self.manager)


class RequirementsAnalyzer(ManifestAnalyzer):
	manager = "pip"
	manifest = "requirements.txt"

	_LINE_RE = re.compile(r"^([A-Za-z0-9][A-Za-z0-9._-]*)(?:\[[^\]]*\])?\s*(?:(===|==|~=|>=|<=|>|<|!=)\s*([^\s,;#]+))?")

	def parse(self, content: str) -> Snapshot:
		deps: Snapshot = {}
		for line in content.splitlines():
			line = line.split("#", 1)[0].strip()
			if not line or line.startswith("-"):
				continue
			match = self._LINE_RE.match(line)
			if match:
				# PEP 503 name normalization
				name = re.sub(r"[-_.]+", "-", match.group(1)).lower()
				deps[name] = (match.group(3) or "", True)
		return deps


class PackageJsonAnalyzer(ManifestAnalyzer):
	manager = "npm"
	manifest = "package.json"

	def parse(self, content: str) -> Snapshot:
		if not content.strip():
			return {}
		try:
			data = json.loads(content)
		except json.JSONDecodeError as e:
			logger.warning(f"Could not parse package.json: {e}")
			return {}
		deps: Snapshot = {}
		for key in ("dependencies", "devDependencies"):
			for name, version in (data.get(key) or {}).items():
				deps[name] = (str(version).lstrip("^~="), key == "dependencies")
		return deps


class GoModAnalyzer(ManifestAnalyzer):
	manager = "go.mod"
	manifest = "go.mod"

	_REQUIRE_RE = re.compile(r"^(?:require\s+)?(\S+)\s+(v\S+)(\s*//\s*indirect)?")

	def parse(self, content: str) -> Snapshot:
		deps: Snapshot = {}
		in_block = False
		for raw in content.splitlines():
			line = raw.strip()
			if line.startswith("require ("):
				in_block = True
				continue
			if in_block and line == ")":
				in_block = False
				continue
			if not in_block and not line.startswith("require "):
				continue
			match = self._REQUIRE_RE.match(line)
			if match:
				deps[match.group(1)] = (match.group(2), not match.group(3))
		return deps


def diff_snapshots(old: Snapshot, new: Snapshot, manager: str) -> List[DependencyChange]:
	"""Added, updated and removed dependencies, each group sorted by name."""
	changes: List[DependencyChange] = []
	for name in sorted(new):
		version, direct = new[name]
		if name not in old:
			changes.append(DependencyChange(name=name, new_version=version, type="added", manager=manager, is_direct=direct))
		elif old[name][0] != version:
			changes.append(DependencyChange(
				name=name,
				old_version=old[name][0],
				new_version=version,
				type="updated",
				manager=manager,
				severity=change_severity(old[name][0], version),
				is_direct=direct,
			))
	for name in sorted(set(old) - set(new)):
		version, direct = old[name]
		changes.append(DependencyChange(name=name, old_version=version, type="removed", manager=manager, is_direct=direct))
	return changes


DEFAULT_ANALYZERS = (RequirementsAnalyzer(), PackageJsonAnalyzer(), GoModAnalyzer())


def analyze_dependency_changes(
	source: FileSource,
	previous_ref: str,
	current_ref: str = "HEAD",
	analyzers=DEFAULT_ANALYZERS,
) -> List[DependencyChange]:
	"""Run every analyzer whose manifest exists at `current_ref`.

	A failing analyzer is logged and skipped; the others still contribute.
	"""
	changes: List[DependencyChange] = []
	for analyzer in analyzers:
		try:
			changes.extend(analyzer.analyze(source, previous_ref, current_ref))
		except Exception as e:
			logger.warning(f"Dependency analysis of {analyzer.manifest} failed: {e}")
	if changes:
		logger.info(f"✓ Found {len(changes)} dependency changes since {previous_ref}")
	return changes
