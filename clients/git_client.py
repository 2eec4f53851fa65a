#!/usr/bin/env python3
"""Git access backed by the `git` command line.

Reads what release analysis needs (last tag, commits since a tag, tag dates,
repository coordinates, files at a ref) and performs the release-cut writes:
staging, committing, pushing and tagging.
"""

import logging
import re
import subprocess
from typing import List, Optional, Tuple

from configs.config import Config
from utils.release_models import Commit

# Set up logging
logger = logging.getLogger(__name__)

SSH_REPO_RE = re.compile(r"git@([^:]+):([^/]+)/(.+?)(?:\.git)?$")
HTTPS_REPO_RE = re.compile(r"https?://(?:[^@/]+@)?([^/]+)/([^/]+)/(.+?)(?:\.git)?/?$")

# %x1f separates hash from message, %x1e terminates each record
_LOG_FORMAT = "--pretty=format:%H%x1f%s%n%b%x1e"


class GitError(Exception):
	"""Raised when a git command fails."""
	def __init__(self, message: str, code: str = "GIT") -> None:
		super().__init__(message)
		self.code = code


def detect_provider(host: str) -> str:
	if "github" in host:
		return "github"
	if "gitlab" in host:
		return "gitlab"
	return "unknown"


def parse_repo_url(url: str) -> Tuple[str, str, str]:
	"""Extract (owner, repo, provider) from an SSH or HTTPS remote URL.

	Raises:
		GitError: If the URL matches neither form
	"""
	url = (url or "").strip()
	match = SSH_REPO_RE.match(url) or HTTPS_REPO_RE.match(url)
	if not match:
		raise GitError(f"Could not extract repository info from URL: {url}", code="REPO_INFO")
	host, owner, repo = match.group(1), match.group(2), match.group(3)
	return owner, repo, detect_provider(host)


class GitClient:
	"""Reads the local repository history and performs the release-cut writes."""

	def __init__(self, cwd: Optional[str] = None, timeout_s: Optional[int] = None):
		"""Initialize the git client.

		Args:
			cwd: Repository directory (defaults to the current directory)
			timeout_s: Per-command timeout in seconds (defaults to Config.GIT_TIMEOUT_S)
		"""
		self.cwd = cwd
		self.timeout_s = timeout_s or Config.GIT_TIMEOUT_S

	def _run_git(self, *args: str) -> str:
		"""Run a git command and return stdout."""
		try:
			result = subprocess.run(
				["git", *args],
				cwd=self.cwd,
				capture_output=True,
				text=True,
				check=True,
				encoding="utf-8",
				errors="replace",
				timeout=self.timeout_s,
			)
			return result.stdout
		except subprocess.CalledProcessError as e:
			raise GitError(f"Git command failed: git {' '.join(args)}\n{(e.stderr or '').strip()}")
		except subprocess.TimeoutExpired:
			raise GitError(f"Git command timed out after {self.timeout_s}s: git {' '.join(args)}", code="TIMEOUT")
		except FileNotFoundError:
			raise GitError("Git is not installed or not in PATH", code="NOT_INSTALLED")

	def get_last_tag(self) -> str:
		"""Return the most recent reachable tag, or "" when the repository has none."""
		try:
			return self._run_git("describe", "--tags", "--abbrev=0").strip()
		except GitError as e:
			if e.code in ("TIMEOUT", "NOT_INSTALLED"):
				raise
			logger.debug("No tags found")
			return ""

	def get_commit_count(self) -> int:
		output = self._run_git("rev-list", "--count", "HEAD").strip()
		try:
			return int(output)
		except ValueError:
			return 0

	def get_commits_since_tag(self, tag: str, until: str = "HEAD") -> List[Commit]:
		"""List non-merge commits after `tag` up to `until`, newest first.

		An empty `tag` reads the whole history reachable from `until`.
		"""
		args = ["log", _LOG_FORMAT, "--no-merges", f"{tag}..{until}" if tag else until]
		output = self._run_git(*args)

		commits: List[Commit] = []
		for record in output.split("\x1e"):
			record = record.strip("\n")
			if not record:
				continue
			sha, _, message = record.partition("\x1f")
			message = message.strip()
			if not message:
				continue
			commits.append(Commit(hash=sha.strip() or None, message=message))
		logger.debug(f"✓ Read {len(commits)} commits since {tag or 'repository start'}")
		return commits

	def get_tag_date(self, tag: str) -> str:
		"""Return the tag's date as YYYY-MM-DD.

		Raises:
			GitError: If the tag does not exist
		"""
		output = self._run_git("log", "-1", "--format=%ai", tag).strip()
		if not output:
			raise GitError(f"Tag {tag} has no date", code="TAG_NOT_FOUND")
		return output[:10]

	def get_repo_info(self) -> Tuple[str, str, str]:
		"""Return (owner, repo, provider) parsed from the `origin` remote."""
		url = self._run_git("remote", "get-url", "origin").strip()
		return parse_repo_url(url)

	def get_current_branch(self) -> str:
		branch = self._run_git("rev-parse", "--abbrev-ref", "HEAD").strip()
		if not branch:
			raise GitError("No branch detected", code="NO_BRANCH")
		return branch

	def fetch_tags(self) -> None:
		logger.debug("Fetching tags from origin")
		self._run_git("fetch", "--tags", "origin")

	def get_file_at_ref(self, ref: str, path: str) -> Optional[str]:
		"""Return the content of `path` at `ref`, or None when it does not exist there."""
		try:
			return self._run_git("show", f"{ref}:{path}")
		except GitError as e:
			if e.code in ("TIMEOUT", "NOT_INSTALLED"):
				raise
			logger.debug(f"{path} not present at {ref}")
			return None

	def add(self, *paths: str) -> None:
		self._run_git("add", "--", *paths)

	def has_staged_changes(self) -> bool:
		return bool(self._run_git("diff", "--cached", "--name-only").strip())

	def commit(self, message: str) -> None:
		"""Commit the staged changes.

		Raises:
			GitError: code NO_CHANGES when nothing is staged
		"""
		if not self.has_staged_changes():
			raise GitError("Nothing staged to commit", code="NO_CHANGES")
		self._run_git("commit", "-m", message)
		logger.info(f"✓ Committed: {message.splitlines()[0]}")

	def push(self) -> None:
		self._run_git("push", "origin", "HEAD")
		logger.info("✓ Pushed HEAD to origin")

	def create_tag(self, version: str, message: str) -> None:
		"""Create the annotated tag `version`.

		Raises:
			GitError: code TAG when git refuses, usually because the tag exists
		"""
		try:
			self._run_git("tag", "-a", version, "-m", message)
		except GitError as e:
			if e.code != "GIT":
				raise
			raise GitError(f"Could not create tag {version}: {e}", code="TAG")
		logger.info(f"✓ Created tag {version}")

	def push_tag(self, version: str) -> None:
		self._run_git("push", "origin", version)
		logger.info(f"✓ Pushed tag {version}")
