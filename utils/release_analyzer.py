#!/usr/bin/env python3
"""Build the next Release from the commit history since the last tag."""
from __future__ import annotations

import logging
from typing import List, Optional, Protocol

from clients.git_client import GitClient, GitError
from configs.config import Config
from utils.commit_classifier import categorize_commits, filter_valid_commits
from utils.dependency_analyzer import analyze_dependency_changes
from utils.release_models import Commit, FileStatistics, Issue, PullRequest, Release
from utils.version_resolver import (
	BASELINE_VERSION,
	calculate_version,
	is_semver_tag,
	validate_version_increment,
)

logger = logging.getLogger(__name__)


class ReleaseAnalysisError(Exception):
	def __init__(self, message: str, code: str = "UNKNOWN") -> None:
		super().__init__(message)
		self.code = code


class NothingToReleaseError(ReleaseAnalysisError):
	"""There are no commits to release. An expected steady state, not a failure."""
	def __init__(self, message: str = "No changes since the last release") -> None:
		super().__init__(message, code="NO_CHANGES")


def build_release(previous_version: str, commits: List[Commit]) -> Release:
	"""Classify `commits` and resolve the next version on top of `previous_version`.

	Raises:
		NothingToReleaseError: If `commits` is empty
	"""
	if not commits:
		raise NothingToReleaseError(f"No commits since {previous_version}")

	release = Release(previous_version=previous_version, all_commits=list(commits))
	categorize_commits(release)
	release.version, release.version_bump = calculate_version(previous_version, release)

	logger.debug(
		f"✓ Commits categorized: features={len(release.features)} fixes={len(release.bug_fixes)} "
		f"breaking={len(release.breaking)} other={len(release.other)}"
	)
	return release


class ReleaseMetadataSource(Protocol):
	def get_closed_issues_between_tags(self, previous_tag: str, current_ref: str) -> List[Issue]: ...
	def get_merged_prs_between_tags(self, previous_tag: str, current_ref: str) -> List[PullRequest]: ...
	def get_contributors_between_tags(self, previous_tag: str, current_ref: str) -> List[str]: ...
	def get_file_stats_between_tags(self, previous_tag: str, current_ref: str) -> FileStatistics: ...


def enrich_release_context(release: Release, vcs: ReleaseMetadataSource, current_ref: str = "HEAD") -> Release:
	"""Fill the provider metadata of `release` from the VCS host.

	Each getter is independent; a failing one is logged and leaves its field
	untouched. Releases without a real previous tag are returned as-is.
	"""
	previous = release.previous_version
	if not previous or previous == BASELINE_VERSION:
		logger.debug("No previous release tag, skipping metadata enrichment")
		return release

	fetchers = (
		("closed_issues", vcs.get_closed_issues_between_tags),
		("merged_prs", vcs.get_merged_prs_between_tags),
		("contributors", vcs.get_contributors_between_tags),
		("file_stats", vcs.get_file_stats_between_tags),
	)
	for field, fetch in fetchers:
		try:
			setattr(release, field, fetch(previous, current_ref))
		except Exception as e:
			logger.warning(f"Could not fetch {field} between {previous} and {current_ref}: {e}")
	return release


class ReleaseAnalyzer:
	"""Reads git history and produces the Release for the next tag."""

	def __init__(
		self,
		git: Optional[GitClient] = None,
		auto_fetch_tags: Optional[bool] = None,
		analyze_dependencies: Optional[bool] = None,
	):
		self.git = git or GitClient()
		self.auto_fetch_tags = Config.AUTO_FETCH_TAGS if auto_fetch_tags is None else auto_fetch_tags
		self.analyze_dependencies = Config.ANALYZE_DEPENDENCIES if analyze_dependencies is None else analyze_dependencies

	def analyze_next_release(self) -> Release:
		"""Classify commits since the last tag and compute the next version.

		Returns:
			The classified Release with `version` and `version_bump` set

		Raises:
			NothingToReleaseError: If the repository is empty or nothing changed since the last tag
			ReleaseAnalysisError: If git fails or the last tag is not a semantic version
		"""
		if self.auto_fetch_tags:
			try:
				self.git.fetch_tags()
			except GitError as e:
				logger.warning(f"Failed to fetch tags, continuing with local tags: {e}")

		try:
			last_tag = self.git.get_last_tag()
		except GitError as e:
			raise ReleaseAnalysisError(f"Error getting last tag: {e}", code="GIT")

		if not last_tag:
			try:
				count = self.git.get_commit_count()
			except GitError:
				count = 0
			if count == 0:
				raise NothingToReleaseError("No commits found in repository")
			query_tag = ""
			previous_version = BASELINE_VERSION
			logger.info(f"No previous tag found, using {BASELINE_VERSION} as baseline")
		else:
			if not is_semver_tag(last_tag):
				raise ReleaseAnalysisError(f"Tag does not match semver format (vX.Y.Z): '{last_tag}'", code="INVALID_TAG")
			query_tag = last_tag
			previous_version = last_tag

		try:
			commits = self.git.get_commits_since_tag(query_tag)
		except GitError as e:
			raise ReleaseAnalysisError(f"Error getting commits: {e}", code="GIT")

		if commits and not filter_valid_commits(commits):
			logger.warning(f"No conventional commits found among {len(commits)} commits")

		release = build_release(previous_version, commits)

		try:
			validate_version_increment(previous_version, release.version)
		except ValueError as e:
			logger.warning(f"Version increment validation failed: {e}")

		if self.analyze_dependencies and query_tag:
			release.dependencies = analyze_dependency_changes(self.git, query_tag)

		logger.info(f"Next release: {previous_version} -> {release.version} ({release.version_bump})")
		return release
