import os
from typing import Dict, Any

class Config:
	"""Configuration for the release changelog agent."""

	# AWS Bedrock Configuration
	AWS_REGION = os.getenv("AWS_REGION", "us-east-1")
	BEDROCK_MODEL_ID = os.getenv("BEDROCK_MODEL_ID", "anthropic.claude-3-sonnet-20240229-v1:0")
	BEDROCK_MAX_OUTPUT_TOKENS = int(os.getenv("BEDROCK_MAX_OUTPUT_TOKENS", "2000"))
	BEDROCK_TEMPERATURE = float(os.getenv("BEDROCK_TEMPERATURE", "0.1"))
	# When disabled, release notes always come from the deterministic fallback
	AI_ENABLED = bool(int(os.getenv("AI_ENABLED", "1")))
	# One extra model call to fix a response that failed JSON validation
	ALLOW_JSON_REPAIR = bool(int(os.getenv("ALLOW_JSON_REPAIR", "1")))
	REPAIR_PROMPT_MAX_CHARS = int(os.getenv("REPAIR_PROMPT_MAX_CHARS", "20000"))

	# GitHub REST Configuration
	GITHUB_API_URL = os.getenv("GITHUB_API_URL", "https://api.github.com").rstrip('/')
	GITHUB_TOKEN = os.getenv("GITHUB_TOKEN") or os.getenv("GITHUB_PAT")
	HTTP_TIMEOUT_S = int(os.getenv("HTTP_TIMEOUT_S", "30"))
	RELEASE_BODY_MAX_CHARS = int(os.getenv("RELEASE_BODY_MAX_CHARS", "125000"))

	# Git reader
	GIT_TIMEOUT_S = int(os.getenv("GIT_TIMEOUT_S", "30"))
	AUTO_FETCH_TAGS = bool(int(os.getenv("AUTO_FETCH_TAGS", "0")))

	# Changelog
	CHANGELOG_PATH = os.getenv("CHANGELOG_PATH", "CHANGELOG.md")
	CHANGELOG_MIN_CONTENT_CHARS = int(os.getenv("CHANGELOG_MIN_CONTENT_CHARS", "50"))
	RELEASE_NOTES_PATH = os.getenv("RELEASE_NOTES_PATH", "RELEASE_NOTES.md")

	# Release cut
	ANALYZE_DEPENDENCIES = bool(int(os.getenv("ANALYZE_DEPENDENCIES", "1")))
	RELEASE_BRANCHES = [b.strip() for b in os.getenv("RELEASE_BRANCHES", "main,master").split(",") if b.strip()]

	# Prompt locale: "en" or "es"
	RELEASE_LANG = os.getenv("RELEASE_LANG", "en")

	@classmethod
	def get_bedrock_config(cls) -> Dict[str, Any]:
		"""Get Bedrock configuration."""
		return {
			"region_name": cls.AWS_REGION,
			"model_id": cls.BEDROCK_MODEL_ID,
			"max_output_tokens": cls.BEDROCK_MAX_OUTPUT_TOKENS,
			"temperature": cls.BEDROCK_TEMPERATURE,
			"timeout_s": cls.HTTP_TIMEOUT_S,
		}

	@classmethod
	def get_github_config(cls) -> Dict[str, Any]:
		"""Get GitHub configuration for the REST client."""
		return {
			"api_url": cls.GITHUB_API_URL,
			"token": cls.GITHUB_TOKEN,
			"timeout_s": cls.HTTP_TIMEOUT_S,
			"body_max_chars": cls.RELEASE_BODY_MAX_CHARS,
		}

	@classmethod
	def get_changelog_config(cls) -> Dict[str, Any]:
		"""Get changelog location and validator thresholds.

		Returns:
			Mapping with the changelog path and the minimum section length.
		"""
		return {
			"path": cls.CHANGELOG_PATH,
			"min_content_chars": cls.CHANGELOG_MIN_CONTENT_CHARS,
		}
