"""Shared fakes for the release pipeline tests."""

import pytest

from clients.git_client import GitError
from utils.release_models import Commit


class FakeGit:
    """In-memory stand-in for GitClient."""

    def __init__(self, last_tag="", messages=None, count=None, tag_dates=None,
                 repo_info=("acme", "widgets", "github"), branch="main", files=None,
                 existing_tags=()):
        self.last_tag = last_tag
        self.messages = list(messages or [])
        self.count = len(self.messages) if count is None else count
        self.tag_dates = dict(tag_dates or {})
        self.repo_info = repo_info
        self.branch = branch
        self.queried_tag = None
        self.queried_until = None
        self.fetched = False
        self.files = dict(files or {})
        self.existing_tags = set(existing_tags)
        self.added = []
        self.commits_made = []
        self.pushed = 0
        self.tags_created = []
        self.pushed_tags = []

    def get_last_tag(self):
        if isinstance(self.last_tag, Exception):
            raise self.last_tag
        return self.last_tag

    def get_commit_count(self):
        return self.count

    def get_commits_since_tag(self, tag, until="HEAD"):
        self.queried_tag = tag
        self.queried_until = until
        return [Commit(message=m, hash=f"{i:040x}") for i, m in enumerate(self.messages)]

    def get_tag_date(self, tag):
        if tag not in self.tag_dates:
            raise GitError(f"Tag {tag} has no date", code="TAG_NOT_FOUND")
        return self.tag_dates[tag]

    def get_repo_info(self):
        if self.repo_info is None:
            raise GitError("no origin remote", code="REPO_INFO")
        return self.repo_info

    def get_current_branch(self):
        return self.branch

    def fetch_tags(self):
        self.fetched = True

    def get_file_at_ref(self, ref, path):
        return self.files.get((ref, path))

    def add(self, *paths):
        self.added.extend(paths)

    def commit(self, message):
        if not self.added:
            raise GitError("Nothing staged to commit", code="NO_CHANGES")
        self.commits_made.append((message, list(self.added)))
        self.added = []

    def push(self):
        self.pushed += 1

    def create_tag(self, version, message):
        if version in self.existing_tags:
            raise GitError(f"Could not create tag {version}: already exists", code="TAG")
        self.existing_tags.add(version)
        self.tags_created.append((version, message))

    def push_tag(self, version):
        self.pushed_tags.append(version)


def make_commits(*messages):
    return [Commit(message=m) for m in messages]


@pytest.fixture
def fake_git():
    return FakeGit()
