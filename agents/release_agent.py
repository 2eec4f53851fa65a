#!/usr/bin/env python3
"""Release agent: classify commits, synthesize notes and maintain CHANGELOG.md.

Commands:
  analyze     show the next version and the classified changes
  preview     print the changelog section that would be written
  changelog   write the release section into the changelog
  unreleased  make sure the changelog has an Unreleased staging section
  validate    audit the changelog entries
  publish     write the changelog and create the hosted release
  generate    write the release notes to a markdown file
  create      commit the changelog and create the release tag
  push-tag    push a release tag to origin
  edit        rewrite the body of an existing hosted release
"""

import json
import logging
import os
import shlex
import shutil
import subprocess
import sys
import tempfile
from typing import Callable, List, Optional, Tuple

from dotenv import load_dotenv
from langsmith.run_helpers import traceable

# Load environment variables from .env file
load_dotenv()

from clients.bedrock_client import BedrockError
from clients.git_client import GitClient, GitError
from clients.github_client import GithubApiError, GithubAuthError, GithubClient, ReleasePublishError
from configs.config import Config
from utils.changelog_merger import ChangelogMerger, atomic_write
from utils.changelog_validator import validate_changelog
from utils.json_sanitizer import JSONSanitizerError
from utils.markdown_renderer import render_release_body
from utils.notes_synthesizer import NotesGenerator, generate_release_notes
from utils.release_analyzer import (
	NothingToReleaseError,
	ReleaseAnalysisError,
	ReleaseAnalyzer,
	build_release,
	enrich_release_context,
)
from utils.release_models import ChangelogWarning, Release, ReleaseNotes
from utils.version_resolver import (
	format_version,
	is_semver_tag,
	parse_semver,
	previous_version,
	validate_version_increment,
)

# Set up logging
logger = logging.getLogger(__name__)


class ReleaseAgent:
	"""Runs the classify, synthesize and merge steps for one repository."""

	def __init__(
		self,
		git: Optional[GitClient] = None,
		generator: Optional[NotesGenerator] = None,
		use_ai: Optional[bool] = None,
		lang: Optional[str] = None,
	):
		"""Initialize the release agent.

		Args:
			git: History reader (defaults to the repository in the current directory)
			generator: Notes generator; built from Bedrock when None and AI is enabled
			use_ai: Overrides Config.AI_ENABLED
			lang: Prompt locale, "en" or "es" (defaults to Config.RELEASE_LANG)
		"""
		self.git = git or GitClient()
		self.lang = lang or Config.RELEASE_LANG
		self.use_ai = Config.AI_ENABLED if use_ai is None else use_ai
		self._generator = generator
		self._repo_info: Optional[Tuple[str, str, str]] = None
		self.analyzer = ReleaseAnalyzer(git=self.git)
		self.merger = ChangelogMerger(git=self.git)

	def repo_info(self) -> Optional[Tuple[str, str, str]]:
		if self._repo_info is None:
			try:
				self._repo_info = self.git.get_repo_info()
			except GitError as e:
				logger.debug(f"Repository coordinates unavailable: {e}")
		return self._repo_info

	def generator(self) -> Optional[NotesGenerator]:
		if self._generator is None and self.use_ai:
			from utils.release_notes_generator import ReleaseNotesGenerator
			owner, repo, _ = self.repo_info() or ("", "", "")
			self._generator = ReleaseNotesGenerator(lang=self.lang, owner=owner, repo=repo)
		return self._generator

	def _github(self) -> Optional[GithubClient]:
		info = self.repo_info()
		if not info or info[2] != "github" or not Config.GITHUB_TOKEN:
			return None
		return GithubClient(owner=info[0], repo=info[1])

	@traceable(name="analyze_release")
	def analyze(self) -> Release:
		return self.analyzer.analyze_next_release()

	@traceable(name="generate_notes")
	def generate_notes(self, release: Release, current_ref: Optional[str] = None) -> ReleaseNotes:
		generator = self.generator()
		if generator is not None:
			github = self._github()
			if github is not None:
				try:
					enrich_release_context(release, github, current_ref=current_ref or self._head_ref())
				finally:
					github.close()
		return generate_release_notes(release, generator)

	def _head_ref(self) -> str:
		try:
			return self.git.get_current_branch()
		except GitError:
			return "HEAD"

	def preview(self) -> Tuple[Release, ReleaseNotes, str]:
		release = self.analyze()
		notes = self.generate_notes(release)
		return release, notes, self.merger.build_changelog_preview(release, notes)

	@traceable(name="update_changelog")
	def update_changelog(self, path: str) -> Tuple[Release, ReleaseNotes]:
		release = self.analyze()
		notes = self.generate_notes(release)
		self.merger.update_local_changelog(release, notes, path)
		return release, notes

	@traceable(name="publish_release")
	def publish(self, path: str, draft: bool = False) -> Tuple[Release, dict]:
		client = self._publishing_client()
		try:
			release, notes = self.update_changelog(path)
			data = client.create_release(release, notes, draft=draft)
		finally:
			client.close()
		return release, data

	def create_hosted_release(self, release: Release, notes: ReleaseNotes, draft: bool = False) -> dict:
		client = self._publishing_client()
		try:
			return client.create_release(release, notes, draft=draft)
		finally:
			client.close()

	def _publishing_client(self) -> GithubClient:
		info = self.repo_info()
		if not info or info[2] != "github":
			raise ReleasePublishError("Publishing is only supported for GitHub repositories", code="UNSUPPORTED")
		return GithubClient(owner=info[0], repo=info[1])

	def validate_release_branch(self) -> str:
		"""Return the current branch, or raise unless it is a release branch."""
		try:
			branch = self.git.get_current_branch()
		except GitError as e:
			raise ReleaseAnalysisError(f"Error getting current branch: {e}", code="GIT")
		if branch not in Config.RELEASE_BRANCHES:
			raise ReleaseAnalysisError(
				f"Releases are cut from {' or '.join(Config.RELEASE_BRANCHES)}, currently on '{branch}'",
				code="INVALID_BRANCH",
			)
		return branch

	def apply_version(self, release: Release, version: str) -> Release:
		"""Replace the computed version with `version`, normalized to vX.Y.Z."""
		if not is_semver_tag(version):
			raise ReleaseAnalysisError(f"Invalid version '{version}', expected vX.Y.Z", code="INVALID_VERSION")
		normalized = format_version(*parse_semver(version))
		try:
			validate_version_increment(release.previous_version, normalized)
		except ValueError as e:
			raise ReleaseAnalysisError(str(e), code="INVALID_VERSION")
		logger.info(f"Using version {normalized} instead of {release.version}")
		release.version = normalized
		return release

	def prepare_release(self, version: Optional[str] = None) -> Tuple[Release, ReleaseNotes]:
		self.validate_release_branch()
		release = self.analyze()
		if version:
			self.apply_version(release, version)
		return release, self.generate_notes(release)

	@traceable(name="cut_release")
	def cut_release(
		self,
		release: Release,
		notes: ReleaseNotes,
		path: str,
		update_changelog: bool = False,
		push: bool = False,
	) -> None:
		"""Optionally commit the changelog, then create (and push) the annotated tag."""
		if update_changelog:
			self.merger.update_local_changelog(release, notes, path)
			self.commit_changelog(path, release.version)
			if push:
				self.git.push()
		self.git.create_tag(release.version, f"{notes.title}\n\n{notes.summary}".strip())
		if push:
			self.git.push_tag(release.version)

	def create(
		self,
		path: str,
		version: Optional[str] = None,
		update_changelog: bool = False,
		push: bool = False,
	) -> Tuple[Release, ReleaseNotes]:
		release, notes = self.prepare_release(version)
		self.cut_release(release, notes, path, update_changelog=update_changelog, push=push)
		return release, notes

	def commit_changelog(self, path: str, version: str) -> None:
		self.git.add(path)
		self.git.commit(f"chore: update changelog and bump version to {version}")

	def push_tag(self, version: Optional[str] = None) -> str:
		version = version or self.analyze().version
		self.git.push_tag(version)
		return version

	@traceable(name="write_release_notes")
	def write_notes(self, output: str) -> Tuple[Release, ReleaseNotes]:
		release = self.analyze()
		notes = self.generate_notes(release)
		atomic_write(output, render_release_body(notes))
		return release, notes

	def release_for_version(self, version: str) -> Release:
		"""Rebuild the Release of an existing tag from the commits since the version before it."""
		try:
			previous = previous_version(version)
		except ValueError as e:
			raise ReleaseAnalysisError(str(e), code="INVALID_VERSION")
		try:
			commits = self.git.get_commits_since_tag(previous, until=version)
		except GitError as e:
			raise ReleaseAnalysisError(f"Error getting commits: {e}", code="GIT")
		release = build_release(previous, commits)
		release.version = version
		return release

	@traceable(name="edit_release")
	def edit(
		self,
		version: str,
		body: Optional[str] = None,
		regenerate: bool = False,
		editor: Optional[Callable[[str], str]] = None,
	) -> dict:
		"""Replace the body of the hosted release `version`.

		Without an explicit `body` the current one is loaded (or regenerated
		when empty or `regenerate` is set) and passed through `editor`.
		"""
		client = self._publishing_client()
		try:
			if body is None:
				body = client.get_release(version)["body"]
				if regenerate or not body.strip():
					release = self.release_for_version(version)
					body = render_release_body(self.generate_notes(release, current_ref=version))
				if editor is not None:
					body = editor(body)
			return client.update_release(version, body)
		finally:
			client.close()


def print_release_summary(release: Release) -> None:
	print(f"Previous version: {release.previous_version}")
	print(f"Next version: {release.version} ({release.version_bump})")
	print(f"Commits: {len(release.all_commits)}")
	for label, items in (
		("Breaking", release.breaking),
		("Features", release.features),
		("Bug fixes", release.bug_fixes),
		("Improvements", release.improvements),
		("Documentation", release.documentation),
		("Other", release.other),
	):
		if not items:
			continue
		print(f"{label}: {len(items)}")
		for item in items:
			scope = f"({item.scope})" if item.scope else ""
			print(f"  - {item.type}{scope}: {item.description}")


def print_warnings(warnings: List[ChangelogWarning], path: str) -> None:
	if not warnings:
		print(f"✓ {path}: no issues found")
		return
	print(f"{path}: {len(warnings)} warning(s)")
	for w in warnings:
		print(f"  [{w.type}] {w.message}")


def friendly_error(e: Exception) -> str:
	"""User-facing message for a failed command."""
	code = getattr(e, "code", None)
	if isinstance(e, BedrockError):
		if code == "TIMEOUT":
			return f"AI request timed out ({Config.HTTP_TIMEOUT_S}s). Retry, increase HTTP_TIMEOUT_S or use --no-ai."
		if code == "RATE_LIMIT":
			return "AI service is rate limiting requests. Wait a moment and retry, or use --no-ai."
		if code == "UNAUTHORIZED":
			return "AI service rejected the credentials. Check your AWS credentials and Bedrock model access."
		if code == "NETWORK":
			return "Could not reach the AI service. Check your network connection or use --no-ai."
		return f"AI generation failed: {e}"
	if isinstance(e, JSONSanitizerError):
		return f"AI returned invalid release notes ({code}). Retry or use --no-ai."
	if isinstance(e, GitError):
		if code == "NOT_INSTALLED":
			return "git is not installed or not in PATH."
		if code == "TAG":
			return f"{e}. Delete the existing tag or pass --version."
		if code == "NO_CHANGES":
			return "Nothing to commit: the changelog already matches this release."
		if code == "TIMEOUT":
			return f"git command timed out ({Config.GIT_TIMEOUT_S}s)."
		return f"git error: {e}"
	if isinstance(e, ReleaseAnalysisError):
		if code == "INVALID_TAG":
			return f"{e}. Tag releases as vMAJOR.MINOR.PATCH."
		if code == "INVALID_BRANCH":
			return f"{e}. Switch to the release branch first."
		return str(e)
	if isinstance(e, GithubAuthError):
		return f"GitHub authentication failed: {e}"
	if isinstance(e, ReleasePublishError):
		return f"Could not publish release ({code}): {e}"
	if isinstance(e, GithubApiError):
		return f"GitHub API error: {e}"
	if isinstance(e, OSError):
		return f"File error: {e}"
	return f"Unexpected error: {e}"


def open_in_editor(text: str) -> str:
	"""Let the user edit `text` in $EDITOR (or $VISUAL, nano, vim, vi) and return the result."""
	editor = os.getenv("EDITOR") or os.getenv("VISUAL")
	if not editor:
		editor = next((name for name in ("nano", "vim", "vi") if shutil.which(name)), None)
	if not editor:
		raise ReleasePublishError("No editor found. Set EDITOR or pass --body-file", code="NO_EDITOR")

	with tempfile.NamedTemporaryFile("w", suffix=".md", delete=False, encoding="utf-8") as f:
		f.write(text)
		tmp_path = f.name
	try:
		subprocess.run([*shlex.split(editor), tmp_path], check=True)
		with open(tmp_path, "r", encoding="utf-8") as f:
			return f.read()
	except (subprocess.CalledProcessError, FileNotFoundError) as e:
		raise ReleasePublishError(f"Editor '{editor}' failed: {e}", code="EDITOR")
	finally:
		os.unlink(tmp_path)


def confirm(question: str) -> bool:
	try:
		answer = input(f"{question} [y/N] ")
	except EOFError:
		return False
	return answer.strip().lower() in ("y", "yes")


def build_parser():
	import argparse

	common = argparse.ArgumentParser(add_help=False)
	common.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
	common.add_argument("--json", action="store_true", help="Output JSON instead of text")
	common.add_argument("--path", default=None, help="Changelog path (defaults to CHANGELOG_PATH)")
	common.add_argument("--lang", default=None, choices=["en", "es"], help="Release notes language")
	common.add_argument("--no-ai", dest="no_ai", action="store_true", help="Use deterministic notes only")

	parser = argparse.ArgumentParser(
		description="Release Agent - semantic versioning, release notes and CHANGELOG.md maintenance",
		formatter_class=argparse.RawDescriptionHelpFormatter,
		epilog="""
Examples:
  python -m agents.release_agent analyze
  python -m agents.release_agent preview --no-ai
  python -m agents.release_agent changelog --lang es
  python -m agents.release_agent validate --path docs/CHANGELOG.md --json
  python -m agents.release_agent publish --draft
  python -m agents.release_agent generate -o NOTES.md
  python -m agents.release_agent create --changelog --push -y
  python -m agents.release_agent edit --version v1.4.0 --ai
		""",
	)
	sub = parser.add_subparsers(dest="command", required=True)
	sub.add_parser("analyze", parents=[common], help="Show the next version and classified changes")
	sub.add_parser("preview", parents=[common], help="Print the changelog section without writing it")
	sub.add_parser("changelog", parents=[common], help="Write the release section into the changelog")
	sub.add_parser("unreleased", parents=[common], help="Add an Unreleased section if missing")
	sub.add_parser("validate", parents=[common], help="Audit changelog entries")
	pub = sub.add_parser("publish", parents=[common], help="Write the changelog and create the GitHub release")
	pub.add_argument("--draft", action="store_true", help="Create the release as a draft")

	gen = sub.add_parser("generate", parents=[common], help="Write the release notes to a markdown file")
	gen.add_argument("--output", "-o", default=None, help="Output file (defaults to RELEASE_NOTES_PATH)")

	create = sub.add_parser("create", parents=[common], help="Create the release tag, optionally committing the changelog")
	create.add_argument("--version", dest="version", default=None, help="Use this version instead of the computed one")
	create.add_argument("--changelog", action="store_true", help="Update, commit and push the changelog before tagging")
	create.add_argument("--push", action="store_true", help="Push the changelog commit and the tag to origin")
	create.add_argument("--publish", action="store_true", help="Create the GitHub release after pushing the tag")
	create.add_argument("--draft", action="store_true", help="With --publish, create the release as a draft")
	create.add_argument("--yes", "-y", dest="auto", action="store_true", help="Skip the confirmation prompt")

	push = sub.add_parser("push-tag", parents=[common], help="Push a release tag to origin")
	push.add_argument("--version", dest="version", default=None, help="Tag to push (defaults to the computed next version)")

	edit = sub.add_parser("edit", parents=[common], help="Rewrite the body of an existing GitHub release")
	edit.add_argument("--version", dest="version", required=True, help="Release tag to edit")
	edit.add_argument("--body-file", dest="body_file", default=None, help="Use this file as the new body instead of an editor")
	edit.add_argument("--ai", dest="regenerate", action="store_true", help="Regenerate the notes from the release commits")
	return parser


def main(argv: Optional[List[str]] = None) -> int:
	"""CLI entry point for the release agent."""
	parser = build_parser()
	args = parser.parse_args(argv)

	# Set up logging
	log_level = logging.DEBUG if args.verbose else logging.INFO
	logging.basicConfig(
		level=log_level,
		format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
	)

	# Suppress verbose logs from libraries unless in debug mode
	if not args.verbose:
		for name in ("clients.git_client", "clients.bedrock_client", "botocore", "urllib3"):
			logging.getLogger(name).setLevel(logging.WARNING)

	path = args.path or Config.get_changelog_config()["path"]

	try:
		if args.command == "validate":
			warnings = validate_changelog(path)
			if args.json:
				print(json.dumps([w.model_dump() for w in warnings], indent=2, ensure_ascii=False))
			else:
				print_warnings(warnings, path)
			return 0

		if args.command == "unreleased":
			written = ChangelogMerger().ensure_unreleased_section(path)
			print(f"✓ Unreleased section {'added to' if written else 'already present in'} {path}")
			return 0

		agent = ReleaseAgent(use_ai=False if args.no_ai else None, lang=args.lang)

		if args.command == "analyze":
			release = agent.analyze()
			if args.json:
				print(json.dumps(release.model_dump(), indent=2, default=str, ensure_ascii=False))
			else:
				print_release_summary(release)
			return 0

		if args.command == "preview":
			release, notes, fragment = agent.preview()
			if args.json:
				print(json.dumps({"version": release.version, "notes": notes.model_dump(), "changelog": fragment}, indent=2, ensure_ascii=False))
			else:
				print(fragment)
			return 0

		if args.command == "changelog":
			release, _ = agent.update_changelog(path)
			print(f"✓ {path} updated for {release.version}")
			return 0

		if args.command == "publish":
			release, data = agent.publish(path, draft=args.draft)
			print(f"✓ Published {release.version}: {data.get('html_url', '')}")
			return 0

		if args.command == "generate":
			output = args.output or Config.RELEASE_NOTES_PATH
			release, _ = agent.write_notes(output)
			print(f"✓ Release notes for {release.version} written to {output}")
			return 0

		if args.command == "create":
			release, notes = agent.prepare_release(args.version)
			if not args.auto:
				print(render_release_body(notes))
				if not confirm(f"Create tag {release.version}?"):
					print("Release cancelled")
					return 1
			push = args.push or args.publish
			agent.cut_release(release, notes, path, update_changelog=args.changelog, push=push)
			print(f"✓ Created tag {release.version}")
			if args.publish:
				data = agent.create_hosted_release(release, notes, draft=args.draft)
				print(f"✓ Published {release.version}: {data.get('html_url', '')}")
			elif not push:
				print(f"Next: python -m agents.release_agent push-tag --version {release.version}")
			return 0

		if args.command == "push-tag":
			version = agent.push_tag(args.version)
			print(f"✓ Pushed tag {version}")
			return 0

		if args.command == "edit":
			if args.body_file:
				with open(args.body_file, "r", encoding="utf-8") as f:
					data = agent.edit(args.version, body=f.read())
			else:
				data = agent.edit(args.version, regenerate=args.regenerate, editor=open_in_editor)
			print(f"✓ Updated release {args.version}: {data.get('html_url', '')}")
			return 0

		parser.error(f"Unknown command: {args.command}")

	except NothingToReleaseError as e:
		print(f"Nothing to release: {e}")
		return 0

	except KeyboardInterrupt:
		print("\nOperation cancelled by user", file=sys.stderr)
		return 1

	except (BedrockError, JSONSanitizerError, GitError, ReleaseAnalysisError,
			GithubAuthError, GithubApiError, ReleasePublishError, OSError) as e:
		print(f"Error: {friendly_error(e)}", file=sys.stderr)
		if args.verbose:
			logger.exception("Detailed error information:")
		return 1

	except Exception as e:
		print(f"Unexpected error: {e}", file=sys.stderr)
		if args.verbose:
			logger.exception("Detailed error information:")
		else:
			print("Use --verbose for more details", file=sys.stderr)
		return 1


if __name__ == "__main__":
	sys.exit(main())
