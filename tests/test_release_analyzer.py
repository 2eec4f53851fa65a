"""
Tests for ReleaseAnalyzer and release enrichment, driven by an in-memory git.

Run with:
    pytest tests/test_release_analyzer.py -v
"""

import logging

import pytest

from clients.git_client import GitError
from conftest import FakeGit, make_commits
from utils.release_analyzer import (
    NothingToReleaseError,
    ReleaseAnalysisError,
    ReleaseAnalyzer,
    build_release,
    enrich_release_context,
)
from utils.release_models import FileStatistics, Issue, PullRequest, Release


class TestBuildRelease:

    def test_empty_commit_list_is_nothing_to_release(self):
        with pytest.raises(NothingToReleaseError) as exc:
            build_release("v1.0.0", [])
        assert exc.value.code == "NO_CHANGES"

    def test_builds_classified_release(self):
        release = build_release("v1.0.0", make_commits("feat: add X", "fix: correct Y"))
        assert release.version == "v1.1.0"
        assert release.version_bump == "minor"
        assert release.previous_version == "v1.0.0"
        assert len(release.all_commits) == 2


class TestAnalyzeNextRelease:

    def test_commits_since_last_tag(self):
        git = FakeGit(last_tag="v1.0.0", messages=["feat: add X", "fix: correct Y"])
        release = ReleaseAnalyzer(git=git, auto_fetch_tags=False).analyze_next_release()
        assert git.queried_tag == "v1.0.0"
        assert release.version == "v1.1.0"
        assert release.version_bump == "minor"
        assert len(release.features) == 1
        assert len(release.bug_fixes) == 1

    def test_no_tag_uses_baseline_and_all_commits(self):
        git = FakeGit(last_tag="", messages=["feat: first feature"])
        release = ReleaseAnalyzer(git=git, auto_fetch_tags=False).analyze_next_release()
        assert git.queried_tag == ""
        assert release.previous_version == "v0.0.0"
        assert release.version == "v0.1.0"

    def test_empty_repository_is_nothing_to_release(self):
        git = FakeGit(last_tag="", messages=[], count=0)
        with pytest.raises(NothingToReleaseError):
            ReleaseAnalyzer(git=git, auto_fetch_tags=False).analyze_next_release()

    def test_no_commits_since_tag_is_nothing_to_release(self):
        git = FakeGit(last_tag="v2.0.0", messages=[], count=12)
        with pytest.raises(NothingToReleaseError):
            ReleaseAnalyzer(git=git, auto_fetch_tags=False).analyze_next_release()

    def test_nothing_to_release_is_an_analysis_error(self):
        assert issubclass(NothingToReleaseError, ReleaseAnalysisError)

    def test_non_semver_tag_is_rejected(self):
        git = FakeGit(last_tag="nightly", messages=["feat: x"])
        with pytest.raises(ReleaseAnalysisError) as exc:
            ReleaseAnalyzer(git=git, auto_fetch_tags=False).analyze_next_release()
        assert exc.value.code == "INVALID_TAG"

    def test_git_failure_is_wrapped(self):
        git = FakeGit(last_tag=GitError("boom", code="TIMEOUT"))
        with pytest.raises(ReleaseAnalysisError) as exc:
            ReleaseAnalyzer(git=git, auto_fetch_tags=False).analyze_next_release()
        assert exc.value.code == "GIT"
        assert not isinstance(exc.value, NothingToReleaseError)

    def test_fetches_tags_when_enabled(self):
        git = FakeGit(last_tag="v1.0.0", messages=["fix: y"])
        ReleaseAnalyzer(git=git, auto_fetch_tags=True).analyze_next_release()
        assert git.fetched is True

    def test_warns_when_version_does_not_increase(self, caplog):
        git = FakeGit(last_tag="v1.2.0", messages=["docs: typo"])
        with caplog.at_level(logging.WARNING, logger="utils.release_analyzer"):
            release = ReleaseAnalyzer(git=git, auto_fetch_tags=False).analyze_next_release()
        assert release.version == "v1.2.0"
        assert "Version increment validation failed" in caplog.text

    def test_dependency_changes_since_last_tag(self):
        git = FakeGit(last_tag="v1.0.0", messages=["chore(deps): bump requests"], files={
            ("v1.0.0", "requirements.txt"): "requests==2.31.0\n",
            ("HEAD", "requirements.txt"): "requests==2.32.0\n",
        })
        release = ReleaseAnalyzer(git=git, auto_fetch_tags=False).analyze_next_release()
        assert [(d.name, d.type, d.severity) for d in release.dependencies] == [("requests", "updated", "minor")]

    def test_dependency_analysis_can_be_disabled(self):
        git = FakeGit(last_tag="v1.0.0", messages=["fix: y"], files={
            ("HEAD", "requirements.txt"): "requests==2.32.0\n",
        })
        release = ReleaseAnalyzer(git=git, auto_fetch_tags=False, analyze_dependencies=False).analyze_next_release()
        assert release.dependencies == []

    def test_first_release_has_no_dependency_diff(self):
        git = FakeGit(last_tag="", messages=["feat: first"], files={
            ("HEAD", "requirements.txt"): "requests==2.32.0\n",
        })
        release = ReleaseAnalyzer(git=git, auto_fetch_tags=False).analyze_next_release()
        assert release.dependencies == []


# ---------------------------------------------------------------------------
# enrich_release_context
# ---------------------------------------------------------------------------

class FakeMetadataSource:

    def __init__(self, fail=()):
        self.fail = set(fail)
        self.calls = []

    def _maybe_fail(self, name, previous, ref):
        self.calls.append((name, previous, ref))
        if name in self.fail:
            raise RuntimeError(f"{name} unavailable")

    def get_closed_issues_between_tags(self, previous, ref):
        self._maybe_fail("issues", previous, ref)
        return [Issue(number=3, title="Crash on start", author="bob")]

    def get_merged_prs_between_tags(self, previous, ref):
        self._maybe_fail("prs", previous, ref)
        return [PullRequest(number=4, title="Fix crash", author="bob")]

    def get_contributors_between_tags(self, previous, ref):
        self._maybe_fail("contributors", previous, ref)
        return ["alice", "bob"]

    def get_file_stats_between_tags(self, previous, ref):
        self._maybe_fail("stats", previous, ref)
        return FileStatistics(files_changed=2, insertions=10, deletions=3)


class TestEnrichReleaseContext:

    def test_fills_metadata(self):
        release = Release(previous_version="v1.0.0", version="v1.1.0")
        source = FakeMetadataSource()
        enrich_release_context(release, source, current_ref="main")
        assert [i.number for i in release.closed_issues] == [3]
        assert [p.number for p in release.merged_prs] == [4]
        assert release.contributors == ["alice", "bob"]
        assert release.file_stats.files_changed == 2
        assert all(call[1:] == ("v1.0.0", "main") for call in source.calls)

    def test_tolerates_individual_failures(self):
        release = Release(previous_version="v1.0.0", version="v1.1.0")
        enrich_release_context(release, FakeMetadataSource(fail={"issues", "stats"}))
        assert release.closed_issues == []
        assert release.file_stats.files_changed == 0
        assert release.contributors == ["alice", "bob"]

    def test_skips_first_release(self):
        release = Release(previous_version="v0.0.0", version="v0.1.0")
        source = FakeMetadataSource()
        enrich_release_context(release, source)
        assert source.calls == []
