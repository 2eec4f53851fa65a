#!/usr/bin/env python3
"""Release models shared by the classifier, the notes synthesizer and the changelog engine."""
from typing import Dict, Literal, Optional, List
from pydantic import BaseModel, Field, ConfigDict

ChangeType = Literal[
	"feat",
	"fix",
	"docs",
	"style",
	"refactor",
	"perf",
	"test",
	"build",
	"ci",
	"chore",
	"revert",
	"other",
]

VersionBump = Literal["major", "minor", "patch"]

WarningType = Literal["missing_date", "missing_link", "no_sections", "short_content"]

DependencyChangeType = Literal["added", "updated", "removed"]

ChangeSeverity = Literal["major", "minor", "patch", "unknown"]


class Commit(BaseModel):
	"""A raw commit as returned by the git reader."""

	message: str = Field(..., description="Full commit message (subject and body)")
	hash: Optional[str] = Field(None, description="Commit SHA")

	model_config = {"extra": "ignore"}


class ReleaseItem(BaseModel):
	"""One classified unit of change."""

	model_config = ConfigDict(frozen=True)

	type: ChangeType
	scope: Optional[str] = None
	description: str
	breaking: bool = False
	pr_number: Optional[str] = None
	commit_hash: Optional[str] = None


class Issue(BaseModel):
	number: int
	title: str
	author: str = ""
	url: Optional[str] = None

	model_config = {"extra": "ignore"}


class PullRequest(BaseModel):
	number: int
	title: str
	description: str = ""
	author: str = ""
	labels: List[str] = Field(default_factory=list)
	url: Optional[str] = None

	model_config = {"extra": "ignore"}


class DependencyChange(BaseModel):
	name: str
	old_version: str = ""
	new_version: str = ""
	type: DependencyChangeType
	manager: str = ""
	severity: ChangeSeverity = "unknown"
	is_direct: bool = True


class FileChange(BaseModel):
	path: str
	additions: int = 0
	deletions: int = 0


class FileStatistics(BaseModel):
	files_changed: int = 0
	insertions: int = 0
	deletions: int = 0
	top_files: List[FileChange] = Field(default_factory=list)


class Release(BaseModel):
	"""Aggregate for one release cycle.

	Buckets are filled by the classifier; provider metadata (issues, PRs,
	contributors, file statistics, dependencies) passes through untouched to
	the notes synthesizer.
	"""

	previous_version: str = "v0.0.0"
	version: str = ""
	version_bump: VersionBump = "patch"
	all_commits: List[Commit] = Field(default_factory=list)

	breaking: List[ReleaseItem] = Field(default_factory=list)
	features: List[ReleaseItem] = Field(default_factory=list)
	bug_fixes: List[ReleaseItem] = Field(default_factory=list)
	improvements: List[ReleaseItem] = Field(default_factory=list)
	documentation: List[ReleaseItem] = Field(default_factory=list)
	other: List[ReleaseItem] = Field(default_factory=list)

	closed_issues: List[Issue] = Field(default_factory=list)
	merged_prs: List[PullRequest] = Field(default_factory=list)
	contributors: List[str] = Field(default_factory=list)
	new_contributors: List[str] = Field(default_factory=list)
	dependencies: List[DependencyChange] = Field(default_factory=list)
	file_stats: FileStatistics = Field(default_factory=FileStatistics)


class ReleaseNotesSection(BaseModel):
	"""A semantic group of changelog bullets, rendered as `### <title>`."""

	title: str
	items: List[str] = Field(default_factory=list)


class ReleaseNotes(BaseModel):
	"""Synthesizer output.

	`sections` is the preferred grouping; `highlights` is the legacy flat
	list and is only rendered when `sections` is empty.
	"""

	title: str = ""
	summary: str = ""
	highlights: List[str] = Field(default_factory=list)
	sections: List[ReleaseNotesSection] = Field(default_factory=list)
	changelog: str = ""
	breaking_changes: List[str] = Field(default_factory=list)
	links: Dict[str, str] = Field(default_factory=dict)
	recommended: VersionBump = "patch"


class ReleaseNotesPayload(BaseModel):
	"""JSON contract the AI generator must return."""

	model_config = ConfigDict(extra="forbid")

	title: str
	summary: str
	highlights: List[str] = Field(default_factory=list)
	sections: List[ReleaseNotesSection] = Field(default_factory=list)
	breaking_changes: List[str] = Field(default_factory=list)
	contributors: str = "N/A"


class ChangelogWarning(BaseModel):
	"""Advisory finding reported by the changelog validator."""

	type: WarningType
	version: str
	message: str
