#!/usr/bin/env python3
from __future__ import annotations

import json
import logging
from typing import Any, Optional

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import (
	ClientError,
	ConnectTimeoutError,
	BotoCoreError,
	EndpointConnectionError,
	NoCredentialsError,
	ReadTimeoutError,
)

from configs.config import Config

logger = logging.getLogger(__name__)


class BedrockError(Exception):
	"""Typed error with a `.code` the CLI maps to a user-facing message."""
	def __init__(self, message: str, code: str = "UNKNOWN") -> None:
		super().__init__(message)
		self.code = code


def _classify_client_error(e: ClientError) -> str:
	err = e.response.get("Error", {}) if hasattr(e, "response") else {}
	status = e.response.get("ResponseMetadata", {}).get("HTTPStatusCode", "") if hasattr(e, "response") else ""
	low = f"{err.get('Code', '')} {status} {err.get('Message', '')}".lower()
	if "throttl" in low or "429" in low or "too many" in low:
		return "RATE_LIMIT"
	if "accessdenied" in low or "unauthorized" in low or "unrecognizedclient" in low or "403" in low or "401" in low:
		return "UNAUTHORIZED"
	return "UNKNOWN"


class BedrockClient:
	"""Single-shot Claude completions on AWS Bedrock.

	The call is made exactly once: botocore retries are disabled and failures
	surface as BedrockError so the caller decides whether to run again.
	"""

	def __init__(
		self,
		model_id: Optional[str] = None,
		timeout_s: Optional[int] = None,
		max_output_tokens: Optional[int] = None,
		runtime: Any = None,
	) -> None:
		cfg = Config.get_bedrock_config()
		self.region = cfg["region_name"]
		self.model_id = model_id or cfg["model_id"]
		self.timeout_s = int(timeout_s if timeout_s is not None else cfg["timeout_s"])
		self.max_output_tokens = int(max_output_tokens or cfg["max_output_tokens"])
		self.temperature = cfg["temperature"]
		self._runtime = runtime or boto3.client(
			"bedrock-runtime",
			region_name=self.region,
			config=BotoConfig(
				connect_timeout=self.timeout_s,
				read_timeout=self.timeout_s,
				retries={"total_max_attempts": 1, "mode": "standard"},
			),
		)

	def _invoke(self, prompt: str) -> str:
		body = {
			"anthropic_version": "bedrock-2023-05-31",
			"max_tokens": self.max_output_tokens,
			"temperature": self.temperature,
			"messages": [
				{"role": "user", "content": [{"type": "text", "text": prompt}]}
			],
		}
		response = self._runtime.invoke_model(
			modelId=self.model_id,
			contentType="application/json",
			accept="application/json",
			body=json.dumps(body).encode("utf-8"),
		)
		payload = response.get("body")
		raw = payload.read() if hasattr(payload, "read") else payload
		data = json.loads(raw.decode("utf-8") if isinstance(raw, (bytes, bytearray)) else raw)

		# { ..., "content": [{"type": "text", "text": "..."}], ... }
		content = data["content"][0]["text"]
		if not content or not content.strip():
			raise BedrockError("Empty text content in response", code="UNKNOWN")
		return content

	def complete_json(self, prompt: str) -> str:
		"""Send `prompt` and return the model's raw text, which should contain JSON."""
		logger.debug(f"Invoking {self.model_id} (prompt_len={len(prompt)})")
		try:
			text = self._invoke(prompt)
		except BedrockError:
			raise
		except (ReadTimeoutError, ConnectTimeoutError) as e:
			raise BedrockError(f"Bedrock request timed out after {self.timeout_s}s: {e}", code="TIMEOUT")
		except EndpointConnectionError as e:
			raise BedrockError(f"Could not reach Bedrock endpoint: {e}", code="NETWORK")
		except ClientError as e:
			raise BedrockError(f"Bedrock error: {e}", code=_classify_client_error(e))
		except NoCredentialsError as e:
			raise BedrockError(f"AWS credentials not found: {e}", code="UNAUTHORIZED")
		except BotoCoreError as e:
			raise BedrockError(f"Bedrock error: {e}", code="UNKNOWN")
		except json.JSONDecodeError as e:
			raise BedrockError(f"Invalid JSON response from Bedrock: {e}", code="UNKNOWN")
		except (KeyError, IndexError, TypeError) as e:
			raise BedrockError(f"Unexpected Bedrock response shape: {e}", code="UNKNOWN")
		logger.debug(f"✓ Bedrock response received (len={len(text)})")
		return text


__all__ = ["BedrockClient", "BedrockError"]
