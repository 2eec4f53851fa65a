"""
Tests for the GitHub REST client using an in-memory session.

Run with:
    pytest tests/test_github_client.py -v
"""

import json

import pytest
import requests

from clients.github_client import GithubApiError, GithubAuthError, GithubClient, ReleasePublishError
from utils.markdown_renderer import render_release_body
from utils.release_models import Release, ReleaseNotes, ReleaseNotesSection


class FakeResponse:

    def __init__(self, status_code=200, data=None):
        self.status_code = status_code
        self._data = data
        self.content = b"" if data is None else json.dumps(data).encode("utf-8")
        self.text = self.content.decode("utf-8")

    def json(self):
        if self._data is None:
            raise ValueError("no body")
        return self._data


class FakeSession:
    """Routes (method, path suffix) to canned responses and records requests."""

    def __init__(self, routes=None, error=None):
        self.routes = routes or {}
        self.error = error
        self.headers = {}
        self.requests = []
        self.closed = False

    def request(self, method, url, params=None, json=None, timeout=None):
        self.requests.append({"method": method, "url": url, "params": params, "json": json, "timeout": timeout})
        if self.error:
            raise self.error
        for (m, suffix), response in self.routes.items():
            if m == method and url.endswith(suffix):
                return response
        return FakeResponse(404, {"message": "Not Found"})

    def close(self):
        self.closed = True


def make_client(routes=None, error=None, **kwargs):
    session = FakeSession(routes, error)
    return GithubClient("acme", "widgets", token="t0ken", timeout_s=7, session=session, **kwargs), session


@pytest.fixture
def release():
    return Release(previous_version="v1.0.0", version="v1.1.0", version_bump="minor")


@pytest.fixture
def notes():
    return ReleaseNotes(
        title="Version v1.1.0",
        summary="We added exports.",
        sections=[ReleaseNotesSection(title="✨ New Features", items=["Export to CSV (#12)"])],
        breaking_changes=["Removed the v1 API"],
        links={"Contributors": "Thanks to @alice"},
    )


class TestConstruction:

    def test_token_is_required(self, monkeypatch):
        from configs.config import Config
        monkeypatch.setattr(Config, "GITHUB_TOKEN", None)
        with pytest.raises(GithubAuthError):
            GithubClient("acme", "widgets", session=FakeSession())

    def test_auth_header(self):
        _, session = make_client()
        assert session.headers["Authorization"] == "token t0ken"

    def test_default_session_disables_retries(self):
        client = GithubClient("acme", "widgets", token="t0ken")
        adapter = client.session.get_adapter("https://api.github.com")
        assert adapter.max_retries.total == 0
        client.close()


class TestRequest:

    def test_network_error_is_api_error(self):
        client, _ = make_client(error=requests.ConnectionError("down"))
        with pytest.raises(GithubApiError) as exc:
            client.get_release("v1.0.0")
        assert exc.value.status_code is None

    def test_unauthorized(self):
        client, _ = make_client({("GET", "/releases/tags/v1.0.0"): FakeResponse(401, {"message": "Bad credentials"})})
        with pytest.raises(GithubAuthError):
            client.get_release("v1.0.0")

    def test_server_error_keeps_status(self):
        client, _ = make_client({("GET", "/releases/tags/v1.0.0"): FakeResponse(502, {"message": "Bad gateway"})})
        with pytest.raises(GithubApiError) as exc:
            client.get_release("v1.0.0")
        assert exc.value.status_code == 502

    def test_timeout_is_passed(self):
        client, session = make_client({("GET", "/releases/tags/v1.0.0"): FakeResponse(200, {"id": 1})})
        client.get_release("v1.0.0")
        assert session.requests[0]["timeout"] == 7


class TestCreateRelease:

    def test_posts_rendered_body(self, release, notes):
        client, session = make_client({("POST", "/releases"): FakeResponse(201, {"id": 9, "html_url": "https://x/9"})})
        data = client.create_release(release, notes, draft=True)
        assert data["id"] == 9
        sent = session.requests[0]
        assert sent["url"] == "https://api.github.com/repos/acme/widgets/releases"
        assert sent["json"]["tag_name"] == "v1.1.0"
        assert sent["json"]["name"] == "Version v1.1.0"
        assert sent["json"]["draft"] is True
        assert sent["json"]["body"] == render_release_body(notes)

    def test_already_exists(self, release, notes):
        client, _ = make_client({("POST", "/releases"): FakeResponse(422, {"message": "Validation Failed"})})
        with pytest.raises(ReleasePublishError) as exc:
            client.create_release(release, notes)
        assert exc.value.code == "ALREADY_EXISTS"

    def test_missing_repository(self, release, notes):
        client, _ = make_client()
        with pytest.raises(ReleasePublishError) as exc:
            client.create_release(release, notes)
        assert exc.value.code == "NOT_FOUND"

    def test_oversized_body_is_rejected_before_sending(self, release, notes):
        client, session = make_client()
        client.body_max_chars = 10
        with pytest.raises(ReleasePublishError) as exc:
            client.create_release(release, notes)
        assert exc.value.code == "VALIDATION"
        assert session.requests == []


class TestReleaseBody:

    def test_layout(self, notes):
        body = render_release_body(notes)
        assert body == (
            "# Version v1.1.0\n\n"
            "We added exports.\n\n"
            "## ✨ New Features\n\n"
            "- Export to CSV (#12)\n\n"
            "## ⚠️ Breaking Changes\n\n"
            "- Removed the v1 API\n\n"
            "**Contributors:** Thanks to @alice\n"
        )

    def test_highlights_when_no_sections(self):
        body = render_release_body(ReleaseNotes(title="T", highlights=["- one", "two"]))
        assert "## ✨ Highlights\n\n- one\n- two" in body


class TestReleaseLookup:

    def test_get_release(self):
        client, _ = make_client({("GET", "/releases/tags/v1.0.0"): FakeResponse(200, {
            "id": 5, "tag_name": "v1.0.0", "name": "First", "body": None, "html_url": "https://x/5",
        })})
        assert client.get_release("v1.0.0") == {
            "id": 5, "tag_name": "v1.0.0", "name": "First", "body": "", "draft": False, "url": "https://x/5",
        }

    def test_update_release(self):
        client, session = make_client({
            ("GET", "/releases/tags/v1.0.0"): FakeResponse(200, {"id": 5}),
            ("PATCH", "/releases/5"): FakeResponse(200, {"id": 5, "body": "new"}),
        })
        client.update_release("v1.0.0", "new")
        assert session.requests[-1]["json"] == {"body": "new"}


class TestReleaseMetadata:

    def _client(self):
        routes = {
            ("GET", "/commits/v1.0.0"): FakeResponse(200, {"commit": {"committer": {"date": "2026-01-01T00:00:00Z"}}}),
            ("GET", "/compare/v1.0.0...HEAD"): FakeResponse(200, {
                "commits": [
                    {"author": {"login": "alice"}},
                    {"author": None},
                    {"author": {"login": "bob"}},
                    {"author": {"login": "alice"}},
                ],
                "files": [
                    {"filename": f"f{i}.py", "additions": i, "deletions": 1} for i in range(7)
                ],
            }),
        }
        return make_client(routes)[0]

    def test_contributors_are_unique_and_ordered(self):
        assert self._client().get_contributors_between_tags("v1.0.0") == ["alice", "bob"]

    def test_file_stats(self):
        stats = self._client().get_file_stats_between_tags("v1.0.0")
        assert stats.files_changed == 7
        assert stats.insertions == 21
        assert stats.deletions == 7
        assert [f.path for f in stats.top_files] == ["f6.py", "f5.py", "f4.py", "f3.py", "f2.py"]

    def test_closed_issues_skip_pull_requests_and_old_items(self):
        client = self._client()
        client.session.routes[("GET", "/issues")] = FakeResponse(200, [
            {"number": 1, "title": "Crash", "user": {"login": "bob"}, "closed_at": "2026-01-03T00:00:00Z"},
            {"number": 2, "title": "PR", "pull_request": {}, "closed_at": "2026-01-03T00:00:00Z"},
            {"number": 3, "title": "Old", "closed_at": "2025-12-01T00:00:00Z"},
        ])
        issues = client.get_closed_issues_between_tags("v1.0.0")
        assert [i.number for i in issues] == [1]
        assert issues[0].author == "bob"

    def test_merged_prs_since_previous_tag(self):
        client = self._client()
        client.session.routes[("GET", "/pulls")] = FakeResponse(200, [
            {"number": 12, "title": "Export", "merged_at": "2026-01-02T00:00:00Z", "labels": [{"name": "feature"}]},
            {"number": 13, "title": "Closed unmerged", "merged_at": None},
            {"number": 9, "title": "Old", "merged_at": "2025-11-01T00:00:00Z"},
        ])
        prs = client.get_merged_prs_between_tags("v1.0.0")
        assert [p.number for p in prs] == [12]
        assert prs[0].labels == ["feature"]
