#!/usr/bin/env python3
"""AI-backed release notes generation on top of Bedrock."""
from __future__ import annotations

import logging
from datetime import date
from typing import Optional, Protocol

from configs.config import Config
from utils.json_sanitizer import JSONSanitizerError, extract_and_validate_release_notes
from utils.prompt_builder import build_json_repair_prompt, build_release_notes_prompt, normalize_locale
from utils.release_models import Release, ReleaseNotes, ReleaseNotesPayload

logger = logging.getLogger(__name__)


class CompletionClient(Protocol):
	def complete_json(self, prompt: str) -> str: ...


def payload_to_notes(payload: ReleaseNotesPayload, release: Release) -> ReleaseNotes:
	notes = ReleaseNotes(
		title=payload.title.strip(),
		summary=payload.summary.strip(),
		highlights=[h for h in payload.highlights if h.strip()],
		sections=[s for s in payload.sections if s.items],
		breaking_changes=[b for b in payload.breaking_changes if b.strip()],
		recommended=release.version_bump,
	)
	contributors = payload.contributors.strip()
	if contributors and contributors.upper() != "N/A":
		notes.links["Contributors"] = contributors
	return notes


class ReleaseNotesGenerator:
	"""Generates ReleaseNotes by prompting a completion client for JSON."""

	def __init__(
		self,
		client: Optional[CompletionClient] = None,
		lang: Optional[str] = None,
		owner: str = "",
		repo: str = "",
		allow_repair: Optional[bool] = None,
	):
		if client is None:
			from clients.bedrock_client import BedrockClient
			client = BedrockClient()
		self.client = client
		self.lang = normalize_locale(lang or Config.RELEASE_LANG)
		self.owner = owner
		self.repo = repo
		self.allow_repair = Config.ALLOW_JSON_REPAIR if allow_repair is None else allow_repair

	def build_prompt(self, release: Release) -> str:
		return build_release_notes_prompt(
			release,
			locale=self.lang,
			owner=self.owner,
			repo=self.repo,
			release_date=date.today().isoformat(),
		)

	def generate_notes(self, release: Release) -> ReleaseNotes:
		"""Prompt the model and map its JSON answer onto ReleaseNotes.

		Raises:
			BedrockError: If the model call fails
			JSONSanitizerError: If the answer is not valid release notes JSON, after at most one repair attempt
		"""
		prompt = self.build_prompt(release)
		logger.info(f"Requesting AI release notes for {release.version} (lang={self.lang}, prompt_len={len(prompt)})")
		raw = self.client.complete_json(prompt)

		try:
			payload = extract_and_validate_release_notes(raw)
		except JSONSanitizerError as e:
			if not self.allow_repair:
				raise
			logger.warning(f"Model returned invalid JSON ({e.code}), requesting one repair")
			repair_prompt = build_json_repair_prompt(
				raw, str(e), locale=self.lang, max_chars=Config.REPAIR_PROMPT_MAX_CHARS
			)
			payload = extract_and_validate_release_notes(self.client.complete_json(repair_prompt))

		logger.debug(f"✓ AI notes validated: sections={len(payload.sections)} highlights={len(payload.highlights)}")
		return payload_to_notes(payload, release)
