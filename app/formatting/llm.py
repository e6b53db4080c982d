# app/formatting/llm.py
"""
Natural-language rendering of capability results through Anthropic's API.

The formatter is optional: without ANTHROPIC_API_KEY, build_formatter()
returns None and the orchestrator renders every result with the templates
in app.formatting.fallback.
"""
import logging
from typing import Any, Dict, Optional, Protocol

from anthropic import AsyncAnthropic, AnthropicError

from app.capabilities.models import CapabilityResult
from app.core.config import Settings, settings
from app.core.errors import FormattingError
from app.formatting.prompts import SYSTEM_PROMPT, build_result_message

logger = logging.getLogger(__name__)


class ResultFormatter(Protocol):
    async def render(self, slug: str, result: CapabilityResult) -> str:
        """Return display text for the result or raise FormattingError."""
        ...


class AnthropicFormatter:
    def __init__(self, client: AsyncAnthropic, model: str, max_tokens: int = 500):
        self.client = client
        self.model = model
        self.max_tokens = max_tokens

    async def render(self, slug: str, result: CapabilityResult) -> str:
        try:
            response = await self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                system=SYSTEM_PROMPT,
                messages=[
                    {
                        "role": "user",
                        "content": build_result_message(slug, result.model_dump()),
                    }
                ],
            )
        except AnthropicError as e:
            raise FormattingError(f"Formatter request failed: {e}") from e

        text = "".join(
            block.text for block in response.content
            if getattr(block, "type", None) == "text"
        ).strip()
        if not text:
            raise FormattingError("Formatter returned an empty response")
        return text

    async def ping(self) -> bool:
        try:
            response = await self.client.messages.create(
                model=self.model,
                max_tokens=10,
                messages=[{"role": "user", "content": "Hi"}],
            )
        except AnthropicError as e:
            logger.warning(f"Formatter connection check failed: {e}")
            return False
        return len(response.content) > 0


def build_formatter(config: Optional[Settings] = None) -> Optional[AnthropicFormatter]:
    config = config or settings
    if not config.ANTHROPIC_API_KEY:
        logger.info("ANTHROPIC_API_KEY not set, results use template rendering")
        return None
    client = AsyncAnthropic(
        api_key=config.ANTHROPIC_API_KEY,
        timeout=config.FORMATTER_TIMEOUT_SECONDS,
    )
    return AnthropicFormatter(client, config.FORMATTER_MODEL, config.FORMATTER_MAX_TOKENS)


async def check_formatter_connection(formatter: Optional[Any]) -> Dict[str, Any]:
    """Formatter status for /health. Never raises."""
    if formatter is None:
        return {"status": "not_configured"}
    ping = getattr(formatter, "ping", None)
    if ping is None:
        return {"status": "configured"}
    try:
        ok = await ping()
    except Exception as e:
        logger.warning(f"Formatter health check raised: {e}")
        ok = False
    return {"status": "ok" if ok else "error"}
