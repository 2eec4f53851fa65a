"""
Tests for deterministic release notes and generator delegation.

Run with:
    pytest tests/test_notes_synthesizer.py -v
"""

import pytest

from clients.bedrock_client import BedrockError
from conftest import make_commits
from utils.notes_synthesizer import (
    FALLBACK_SECTIONS,
    format_release_item,
    generate_basic_notes,
    generate_release_notes,
)
from utils.release_analyzer import build_release
from utils.release_models import ReleaseItem, ReleaseNotes


@pytest.fixture
def release():
    return build_release("v1.0.0", make_commits(
        "feat(api): add endpoint (#12)",
        "fix: correct rounding",
        "perf: cache lookups",
        "docs: describe config",
        "chore: bump deps",
    ))


class TestFormatReleaseItem:

    @pytest.mark.parametrize("item, expected", [
        (ReleaseItem(type="feat", description="add X"), "add X"),
        (ReleaseItem(type="feat", scope="api", description="add X"), "**api**: add X"),
        (ReleaseItem(type="fix", description="fix Y", pr_number="7"), "fix Y (#7)"),
        (ReleaseItem(type="fix", scope="db", description="fix Y", pr_number="7"), "**db**: fix Y (#7)"),
    ])
    def test_bullet_text(self, item, expected):
        assert format_release_item(item) == expected


class TestGenerateBasicNotes:

    def test_title_and_summary(self, release):
        notes = generate_basic_notes(release)
        assert notes.title == "Version v1.1.0"
        assert notes.summary == "This release includes 1 new features, 1 bug fixes."
        assert notes.highlights == []
        assert notes.recommended == "minor"

    def test_summary_mentions_breaking_changes(self):
        release = build_release("v1.0.0", make_commits("feat!: drop legacy mode", "fix: x"))
        notes = generate_basic_notes(release)
        assert notes.summary == "This release includes 0 new features, 1 bug fixes and 1 breaking changes."

    def test_changelog_headings_in_fixed_order(self):
        release = build_release("v1.0.0", make_commits(
            "docs: guide", "perf: speed", "fix: bug", "feat: thing", "feat!: api",
        ))
        changelog = generate_basic_notes(release).changelog
        positions = [changelog.index(f"### {title}") for _, title in FALLBACK_SECTIONS]
        assert positions == sorted(positions)

    def test_empty_buckets_are_omitted(self, release):
        changelog = generate_basic_notes(release).changelog
        assert "BREAKING" not in changelog
        assert "- **api**: add endpoint (#12)" in changelog
        assert "- correct rounding" in changelog
        assert "bump deps" not in changelog

    def test_sections_mirror_changelog(self, release):
        notes = generate_basic_notes(release)
        titles = [s.title for s in notes.sections]
        assert titles == ["✨ New Features", "🐛 Bug Fixes", "🔧 Improvements", "📚 Documentation"]
        assert notes.sections[0].items == ["**api**: add endpoint (#12)"]

    def test_is_deterministic(self, release):
        assert generate_basic_notes(release) == generate_basic_notes(release)


class FakeGenerator:

    def __init__(self, notes=None, error=None):
        self.notes = notes
        self.error = error
        self.seen = None

    def generate_notes(self, release):
        self.seen = release
        if self.error:
            raise self.error
        return self.notes


class TestGenerateReleaseNotes:

    def test_without_generator_uses_fallback(self, release):
        assert generate_release_notes(release) == generate_basic_notes(release)

    def test_delegates_to_generator(self, release):
        expected = ReleaseNotes(title="AI title", summary="AI summary")
        generator = FakeGenerator(notes=expected)
        assert generate_release_notes(release, generator) is expected
        assert generator.seen is release

    def test_generator_errors_propagate(self, release):
        generator = FakeGenerator(error=BedrockError("slow", code="TIMEOUT"))
        with pytest.raises(BedrockError) as exc:
            generate_release_notes(release, generator)
        assert exc.value.code == "TIMEOUT"
