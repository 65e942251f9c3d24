"""
AI Engine

Thin client for the external reasoning service used by the chat bot.

Key Features:
-   Provider abstraction over OpenAI-compatible chat completion endpoints.
-   JSON-object responses requested from the model.
-   Exponential backoff on rate limits, server errors and connection failures.
-   Robust extraction of a JSON object from free-form model output.
"""

import asyncio
import json
import logging
import re
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

import httpx

from chatroom.exceptions import AIServiceError, ConfigurationError
from chatroom.utils.logging_config import performance_logger

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.openai.com/v1/chat/completions"
DEFAULT_MODEL = "gpt-4.1-2025-04-14"


class AIProvider(Enum):
    """Enumeration of supported AI providers."""
    OPENAI = "openai"


# --- Configuration ---
@dataclass
class AIEngineConfig:
    """Configuration settings for the AIEngine."""
    api_key: str
    provider: AIProvider = AIProvider.OPENAI
    api_url: str = DEFAULT_API_URL
    model: str = DEFAULT_MODEL
    temperature: float = 0.7
    max_tokens: int = 200
    timeout: float = 30.0
    max_retries: int = 2
    json_mode: bool = True

    def __post_init__(self):
        if not self.api_key:
            raise ConfigurationError("API key must be provided to create an AI engine.")


# --- Provider Abstraction ---
class AIProviderBase(ABC):
    """Abstract Base Class for all AI provider implementations."""

    def __init__(self, config: AIEngineConfig, client: httpx.AsyncClient):
        self.config = config
        self.client = client

    @abstractmethod
    async def chat_completion(self, messages: List[Dict[str, Any]]) -> Dict[str, Any]:
        """Generate a chat completion and return the decoded response body."""
        pass


class OpenAIProvider(AIProviderBase):
    """Provider for OpenAI-compatible /chat/completions endpoints."""

    async def chat_completion(self, messages: List[Dict[str, Any]]) -> Dict[str, Any]:
        headers = {
            "Authorization": f"Bearer {self.config.api_key}",
            "Content-Type": "application/json",
        }
        payload: Dict[str, Any] = {
            "model": self.config.model,
            "messages": messages,
            "temperature": self.config.temperature,
            "max_tokens": self.config.max_tokens,
        }
        if self.config.json_mode:
            payload["response_format"] = {"type": "json_object"}

        last_exception: Optional[Exception] = None
        for attempt in range(self.config.max_retries + 1):
            try:
                logger.debug(
                    f"Reasoning request (attempt {attempt + 1}/{self.config.max_retries + 1}) "
                    f"model={self.config.model} messages={len(messages)}"
                )
                response = await self.client.post(self.config.api_url, headers=headers, json=payload)
                response.raise_for_status()
                return response.json()

            except httpx.HTTPStatusError as e:
                last_exception = e
                status = e.response.status_code
                if status in (401, 403):
                    logger.error(f"Reasoning service rejected credentials ({status}): {e.response.text}")
                    raise AIServiceError(
                        f"Authentication/Authorization failed. Check API key. Details: {e.response.text}"
                    ) from e
                if (status >= 500 or status == 429) and attempt < self.config.max_retries:
                    delay = 2 ** attempt
                    logger.warning(f"Server error or rate limit ({status}). Retrying in {delay}s...")
                    await asyncio.sleep(delay)
                    continue
                logger.error(f"Reasoning service HTTP {status}: {e.response.text}")
                raise AIServiceError(f"Reasoning service returned HTTP {status}") from e

            except httpx.RequestError as e:
                last_exception = e
                if attempt < self.config.max_retries:
                    delay = 2 ** attempt
                    logger.warning(f"Request failed ({type(e).__name__}). Retrying in {delay}s...")
                    await asyncio.sleep(delay)
                    continue
                logger.error(f"Reasoning service unreachable: {e}")
                raise AIServiceError(f"Reasoning service unreachable: {e}") from e

            except json.JSONDecodeError as e:
                raise AIServiceError(f"Reasoning service returned a non-JSON body: {e}") from e

        raise AIServiceError(
            f"Chat completion failed after {self.config.max_retries} retries."
        ) from last_exception


# --- Main AIEngine Class ---
class AIEngine:
    """Sends prompts to the reasoning service and returns the raw model text."""

    def __init__(self, config: AIEngineConfig):
        self.config = config
        self.http_client = httpx.AsyncClient(timeout=config.timeout)
        self.provider = self._create_provider()
        logger.debug(
            f"AIEngine initialized with provider '{config.provider.value}' and model '{config.model}'"
        )

    def _create_provider(self) -> AIProviderBase:
        """Factory method to instantiate the configured AI provider."""
        if self.config.provider == AIProvider.OPENAI:
            return OpenAIProvider(self.config, self.http_client)
        raise NotImplementedError(f"Provider '{self.config.provider}' is not implemented.")

    async def generate_response(self, system_prompt: str, user_message: str = "") -> str:
        """
        Run one completion with a system prompt and an optional user turn.

        Returns the stripped content of the first choice. Raises
        AIServiceError when the call fails or the response has no content.
        """
        messages = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_message},
        ]

        started = time.perf_counter()
        success = False
        tokens = 0
        try:
            result = await self.provider.chat_completion(messages)
            tokens = result.get("usage", {}).get("total_tokens", 0) or 0
            try:
                content = result["choices"][0]["message"]["content"]
            except (KeyError, IndexError, TypeError) as e:
                raise AIServiceError(f"Malformed completion body: {str(result)[:200]}") from e
            if not isinstance(content, str):
                raise AIServiceError(f"Completion content is not text: {type(content).__name__}")
            if not content.strip():
                raise AIServiceError("AI returned an empty response.")
            success = True
            return content.strip()
        finally:
            performance_logger.log_ai_generation(
                model=self.config.model,
                tokens=tokens,
                duration_ms=(time.perf_counter() - started) * 1000,
                success=success,
            )

    async def cleanup(self):
        """Closes network connections and cleans up resources."""
        await self.http_client.aclose()
        logger.debug("AIEngine resources have been cleaned up.")


def extract_json_from_text(text: str) -> Dict[str, Any]:
    """
    Robustly extracts a JSON object from a string, which might include markdown.

    Raises ValueError when no JSON object can be recovered.
    """
    text = text.strip()

    # Strategy 1: Look for markdown code blocks
    match = re.search(r"```(?:json)?\s*\n({.*?})\s*\n```", text, re.DOTALL)
    if match:
        try:
            return _as_object(json.loads(match.group(1)))
        except json.JSONDecodeError:
            logger.warning("Found markdown block but failed to parse JSON.")

    # Strategy 2: Find the first '{' and last '}'
    start = text.find("{")
    end = text.rfind("}")
    if start != -1 and end > start:
        try:
            return _as_object(json.loads(text[start : end + 1]))
        except json.JSONDecodeError as e:
            logger.debug(f"Failed to parse content between braces: {e}")

    # Strategy 3: Try to parse the entire string
    try:
        return _as_object(json.loads(text))
    except json.JSONDecodeError:
        raise ValueError(f"Could not extract valid JSON from AI response. Content: {text[:500]}...")


def _as_object(value: Any) -> Dict[str, Any]:
    if not isinstance(value, dict):
        raise ValueError(f"Expected a JSON object, got {type(value).__name__}")
    return value


# --- Factory Function ---
def create_ai_engine(
    api_key: Optional[str],
    model: str = DEFAULT_MODEL,
    **kwargs,
) -> AIEngine:
    """
    Factory function to create and configure an AIEngine instance.

    Args:
        api_key: The API key for the reasoning service.
        model: The specific AI model to use.
        **kwargs: Additional configuration options for AIEngineConfig.

    Returns:
        An initialized AIEngine instance.
    """
    if not api_key:
        raise ConfigurationError("API key must be provided to create an AI engine.")

    config = AIEngineConfig(api_key=api_key, model=model, **kwargs)
    return AIEngine(config)


__all__ = [
    "AIEngine",
    "AIEngineConfig",
    "AIProvider",
    "create_ai_engine",
    "extract_json_from_text",
]
