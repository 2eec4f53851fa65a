#!/usr/bin/env python3
"""Conventional Commits classification into release buckets."""
from __future__ import annotations

import re
from typing import List

from utils.release_models import Commit, Release, ReleaseItem

CONVENTIONAL_COMMIT_RE = re.compile(
	r"^(feat|fix|docs|style|refactor|perf|test|build|ci|chore|revert)(\(([^)]+)\))?(!)?:\s*(.+)"
)
BREAKING_CHANGE_RE = re.compile(r"BREAKING[ -]CHANGE:\s*(.+)")
PR_REFERENCE_RE = re.compile(r"\(#(\d+)\)")
_TRAILING_PR_RE = re.compile(r"\s*\(#\d+\)\s*$")


def _has_breaking_footer(lines: List[str]) -> bool:
	return any(BREAKING_CHANGE_RE.search(line) for line in lines)


def parse_commit(commit: Commit) -> ReleaseItem:
	"""Turn one raw commit into a ReleaseItem.

	Non-conventional subjects become `other` items that keep the whole first line.
	"""
	lines = commit.message.split("\n")
	first_line = lines[0]

	pr_match = PR_REFERENCE_RE.search(first_line)
	pr_number = pr_match.group(1) if pr_match else None

	match = CONVENTIONAL_COMMIT_RE.match(first_line)
	if not match:
		return ReleaseItem(
			type="other",
			description=first_line,
			pr_number=pr_number,
			commit_hash=commit.hash,
		)

	commit_type = match.group(1)
	scope = match.group(3) or None
	breaking = match.group(4) == "!" or _has_breaking_footer(lines[1:])
	description = match.group(5).strip()
	# the PR number is rendered separately
	if pr_number:
		description = _TRAILING_PR_RE.sub("", description) or description

	return ReleaseItem(
		type=commit_type,
		scope=scope,
		description=description,
		breaking=breaking,
		pr_number=pr_number,
		commit_hash=commit.hash,
	)


def categorize_commits(release: Release) -> None:
	"""Fill the release buckets from `release.all_commits`, keeping commit order."""
	for commit in release.all_commits:
		item = parse_commit(commit)
		if item.type == "feat":
			if item.breaking:
				release.breaking.append(item)
			else:
				release.features.append(item)
		elif item.type == "fix":
			release.bug_fixes.append(item)
		elif item.type == "docs":
			release.documentation.append(item)
		elif item.type in ("perf", "refactor"):
			release.improvements.append(item)
		else:
			release.other.append(item)


def filter_valid_commits(commits: List[Commit]) -> List[Commit]:
	return [c for c in commits if CONVENTIONAL_COMMIT_RE.match(c.message)]
