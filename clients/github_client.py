#!/usr/bin/env python3
"""GitHub REST client for release publishing and release metadata.

Requests are made once: the session mounts an adapter with retries disabled
and every failure surfaces as a typed error.
"""

import logging
from typing import Any, Dict, List, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from configs.config import Config
from utils.markdown_renderer import render_release_body
from utils.release_models import FileChange, FileStatistics, Issue, PullRequest, Release, ReleaseNotes

# Set up logging
logger = logging.getLogger(__name__)

TOP_FILES_LIMIT = 5


class GithubAuthError(Exception):
    """Raised when GitHub API authentication fails."""
    pass


class GithubApiError(Exception):
    """Raised when GitHub API operations fail."""
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ReleasePublishError(Exception):
    def __init__(self, message: str, code: str = "UNKNOWN"):
        super().__init__(message)
        self.code = code


class GithubClient:
    """Release operations on one repository."""

    def __init__(
        self,
        owner: str,
        repo: str,
        token: Optional[str] = None,
        timeout_s: Optional[int] = None,
        session: Optional[requests.Session] = None,
    ):
        """Initialize the client.

        Args:
            owner: Repository owner (user or organization)
            repo: Repository name
            token: GitHub token (defaults to Config.GITHUB_TOKEN)
            timeout_s: Request timeout in seconds (defaults to Config.HTTP_TIMEOUT_S)
            session: Pre-built session, mainly for tests

        Raises:
            GithubAuthError: If no token is available
        """
        github_config = Config.get_github_config()
        self.owner = owner
        self.repo = repo
        self.token = token or github_config["token"]
        self.timeout_s = timeout_s or github_config["timeout_s"]
        self.body_max_chars = github_config["body_max_chars"]
        self.base_url = github_config["api_url"]

        if not self.token:
            raise GithubAuthError("GitHub token is required (GITHUB_TOKEN or GITHUB_PAT env var)")

        if session is None:
            session = requests.Session()
            adapter = HTTPAdapter(max_retries=Retry(total=0, raise_on_status=False))
            session.mount("https://", adapter)
            session.mount("http://", adapter)
        self.session = session
        self.session.headers.update({
            'Authorization': f'token {self.token}',
            'Accept': 'application/vnd.github+json',
            'User-Agent': 'release-changelog-agent/1.0'
        })

    @property
    def repo_url(self) -> str:
        return f"{self.base_url}/repos/{self.owner}/{self.repo}"

    # -------- HTTP helpers --------
    def _request(self, method: str, path: str, *, params: Optional[Dict[str, Any]] = None,
                 payload: Optional[Dict[str, Any]] = None) -> Any:
        url = f"{self.repo_url}{path}"
        try:
            response = self.session.request(method, url, params=params, json=payload, timeout=self.timeout_s)
        except requests.Timeout as e:
            raise GithubApiError(f"GitHub request timed out after {self.timeout_s}s: {method} {path}: {e}")
        except requests.RequestException as e:
            raise GithubApiError(f"GitHub request failed: {method} {path}: {e}")

        if response.status_code == 401:
            raise GithubAuthError("Invalid GitHub token or insufficient permissions")
        if response.status_code >= 400:
            message = ""
            try:
                message = response.json().get("message", "")
            except ValueError:
                message = response.text[:200]
            raise GithubApiError(
                f"GitHub API error: HTTP {response.status_code} on {method} {path}: {message}",
                status_code=response.status_code,
            )
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    def _validate_body(self, body: str) -> None:
        if not body:
            raise ReleasePublishError("Empty release body", code="VALIDATION")
        if len(body) > self.body_max_chars:
            raise ReleasePublishError(
                f"Release body exceeds limit: len={len(body)} max={self.body_max_chars}",
                code="VALIDATION",
            )

    # -------- Releases --------
    def create_release(self, release: Release, notes: ReleaseNotes, draft: bool = False) -> Dict[str, Any]:
        """Create the hosted release for `release.version`.

        Raises:
            ReleasePublishError: VALIDATION for an oversized body, ALREADY_EXISTS or NOT_FOUND from the API
            GithubAuthError: If the token is rejected
        """
        body = render_release_body(notes)
        self._validate_body(body)
        payload = {
            "tag_name": release.version,
            "name": notes.title or release.version,
            "body": body,
            "draft": draft,
            "prerelease": False,
            "make_latest": "true",
        }
        try:
            data = self._request("POST", "/releases", payload=payload)
        except GithubApiError as e:
            if e.status_code == 422:
                raise ReleasePublishError(f"Release {release.version} already exists", code="ALREADY_EXISTS")
            if e.status_code == 404:
                raise ReleasePublishError(f"Repository or tag {release.version} not found", code="NOT_FOUND")
            raise
        logger.info(f"✓ Created {'draft ' if draft else ''}release {release.version}: {data.get('html_url', '')}")
        return data

    def get_release(self, tag: str) -> Dict[str, Any]:
        try:
            data = self._request("GET", f"/releases/tags/{tag}")
        except GithubApiError as e:
            if e.status_code == 404:
                raise ReleasePublishError(f"Release {tag} not found", code="NOT_FOUND")
            raise
        return {
            "id": data.get("id"),
            "tag_name": data.get("tag_name", tag),
            "name": data.get("name") or "",
            "body": data.get("body") or "",
            "draft": bool(data.get("draft", False)),
            "url": data.get("html_url", ""),
        }

    def update_release(self, tag: str, body: str) -> Dict[str, Any]:
        self._validate_body(body)
        current = self.get_release(tag)
        data = self._request("PATCH", f"/releases/{current['id']}", payload={"body": body})
        logger.info(f"✓ Updated release body for {tag}")
        return data

    # -------- Release metadata --------
    def _ref_date(self, ref: str) -> str:
        data = self._request("GET", f"/commits/{ref}")
        return data["commit"]["committer"]["date"]

    def _compare(self, base: str, head: str) -> Dict[str, Any]:
        return self._request("GET", f"/compare/{base}...{head}")

    def get_closed_issues_between_tags(self, previous_tag: str, current_ref: str = "HEAD") -> List[Issue]:
        since = self._ref_date(previous_tag)
        items = self._request("GET", "/issues", params={
            "state": "closed", "since": since, "sort": "updated", "direction": "desc", "per_page": 100,
        }) or []
        issues: List[Issue] = []
        for item in items:
            # the issues endpoint also returns pull requests
            if "pull_request" in item or (item.get("closed_at") or "") < since:
                continue
            issues.append(Issue(
                number=item["number"],
                title=item.get("title", ""),
                author=(item.get("user") or {}).get("login", ""),
                url=item.get("html_url"),
            ))
        logger.debug(f"✓ {len(issues)} issues closed since {previous_tag}")
        return issues

    def get_merged_prs_between_tags(self, previous_tag: str, current_ref: str = "HEAD") -> List[PullRequest]:
        since = self._ref_date(previous_tag)
        items = self._request("GET", "/pulls", params={
            "state": "closed", "sort": "updated", "direction": "desc", "per_page": 100,
        }) or []
        prs: List[PullRequest] = []
        for item in items:
            merged_at = item.get("merged_at")
            if not merged_at or merged_at < since:
                continue
            prs.append(PullRequest(
                number=item["number"],
                title=item.get("title", ""),
                description=item.get("body") or "",
                author=(item.get("user") or {}).get("login", ""),
                labels=[label.get("name", "") for label in item.get("labels") or []],
                url=item.get("html_url"),
            ))
        logger.debug(f"✓ {len(prs)} pull requests merged since {previous_tag}")
        return prs

    def get_contributors_between_tags(self, previous_tag: str, current_ref: str = "HEAD") -> List[str]:
        data = self._compare(previous_tag, current_ref)
        contributors: List[str] = []
        for commit in data.get("commits") or []:
            login = (commit.get("author") or {}).get("login")
            if login and login not in contributors:
                contributors.append(login)
        return contributors

    def get_file_stats_between_tags(self, previous_tag: str, current_ref: str = "HEAD") -> FileStatistics:
        data = self._compare(previous_tag, current_ref)
        files = data.get("files") or []
        changes = [
            FileChange(path=f.get("filename", ""), additions=f.get("additions", 0), deletions=f.get("deletions", 0))
            for f in files
        ]
        top = sorted(changes, key=lambda c: c.additions + c.deletions, reverse=True)[:TOP_FILES_LIMIT]
        return FileStatistics(
            files_changed=len(files),
            insertions=sum(c.additions for c in changes),
            deletions=sum(c.deletions for c in changes),
            top_files=top,
        )

    def close(self) -> None:
        """Close the HTTP session."""
        if self.session:
            self.session.close()
