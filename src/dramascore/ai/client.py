"""Async Anthropic client wrapper for structured JSON generation."""

import asyncio
import json
import logging
from typing import Any, Optional

from anthropic import AsyncAnthropic

from ..config import Config
from ..core.models import ConfigurationError

logger = logging.getLogger(__name__)


class AIClient:
    """Wrapper for Claude API calls that return a JSON object."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        api_key = api_key or Config.ANTHROPIC_API_KEY
        if not api_key or not api_key.strip():
            raise ConfigurationError("ANTHROPIC_API_KEY is required for server-side scoring.")
        self.timeout = timeout or Config.AI_TIMEOUT_SECONDS
        self.client = AsyncAnthropic(api_key=api_key.strip(), timeout=self.timeout)
        self.model = model or Config.MODEL

    async def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int = Config.MAX_TOKENS,
        temperature: float = Config.AI_TEMPERATURE,
    ) -> str:
        """Generate text using Claude API.

        Args:
            system_prompt: Instructions for the AI
            user_prompt: User's input/request
            max_tokens: Maximum response length
            temperature: Sampling temperature

        Returns:
            Concatenated text blocks of the response
        """
        message = await asyncio.wait_for(
            self.client.messages.create(
                model=self.model,
                max_tokens=max_tokens,
                system=system_prompt,
                messages=[{"role": "user", "content": user_prompt}],
                temperature=temperature,
            ),
            timeout=self.timeout,
        )
        return "".join(block.text for block in message.content if block.type == "text")

    async def generate_json(
        self,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int = Config.MAX_TOKENS,
        temperature: float = Config.AI_TEMPERATURE,
    ) -> Any:
        """Generate a response and parse it as JSON."""
        text = await self.generate(system_prompt, user_prompt, max_tokens, temperature)
        return parse_json_response(text)

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self.client.close()


def parse_json_response(text: str) -> Any:
    """Parse JSON from a model response (may be wrapped in markdown fences)."""
    json_text = text.strip()
    if json_text.startswith('```'):
        lines = json_text.split('\n')
        json_text = '\n'.join(lines[1:-1] if lines[-1].strip().startswith('```') else lines[1:])
    if not json_text:
        raise ValueError("empty output")
    return json.loads(json_text)
