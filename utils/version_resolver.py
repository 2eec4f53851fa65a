#!/usr/bin/env python3
"""Semantic version arithmetic for the next release tag."""
from __future__ import annotations

import re
from typing import Optional, Tuple

from utils.release_models import Release, VersionBump

SEMVER_RE = re.compile(r"v?(\d+)\.(\d+)\.(\d+)")

BASELINE_VERSION = "v0.0.0"


def parse_semver(tag: Optional[str]) -> Tuple[int, int, int]:
	"""Return (major, minor, patch) found in `tag`, or (0, 0, 0) if there is none."""
	match = SEMVER_RE.search(tag or "")
	if not match:
		return 0, 0, 0
	return int(match.group(1)), int(match.group(2)), int(match.group(3))


def is_semver_tag(tag: str) -> bool:
	return bool(SEMVER_RE.search(tag or ""))


def format_version(major: int, minor: int, patch: int) -> str:
	return f"v{major}.{minor}.{patch}"


def calculate_version(previous_tag: Optional[str], release: Release) -> Tuple[str, VersionBump]:
	"""Compute the next version from the classified buckets.

	Priority is breaking > features > fixes/improvements. When only docs or
	other items exist the version is returned unchanged but still labelled
	as a patch bump.
	"""
	major, minor, patch = parse_semver(previous_tag)
	bump: VersionBump = "patch"

	if release.breaking:
		major += 1
		minor = 0
		patch = 0
		bump = "major"
	elif release.features:
		minor += 1
		patch = 0
		bump = "minor"
	elif release.bug_fixes or release.improvements:
		patch += 1
		bump = "patch"

	return format_version(major, minor, patch), bump


def compare_versions(a: str, b: str) -> int:
	"""Return -1, 0 or 1 comparing two version strings numerically."""
	pa = parse_semver(a)
	pb = parse_semver(b)
	return (pa > pb) - (pa < pb)


def validate_version_increment(old_version: str, new_version: str) -> None:
	"""Raise ValueError unless `new_version` is strictly greater than `old_version`."""
	if compare_versions(old_version, new_version) >= 0:
		raise ValueError(f"new version {new_version} must be greater than previous version {old_version}")


def previous_version(version: str) -> str:
	"""Step one release back: the lowest non-zero component is decremented.

	v1.2.3 -> v1.2.2, v1.2.0 -> v1.1.0, v2.0.0 -> v1.0.0.

	Raises:
		ValueError: For v0.0.0 or a string without a version
	"""
	if not is_semver_tag(version):
		raise ValueError(f"invalid semver format: {version}")
	major, minor, patch = parse_semver(version)
	if patch > 0:
		return format_version(major, minor, patch - 1)
	if minor > 0:
		return format_version(major, minor - 1, 0)
	if major > 0:
		return format_version(major - 1, 0, 0)
	raise ValueError(f"{version} has no previous version")
