"""
Direct LLM provider calls used to benchmark model availability and token accounting.
"""

import time
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import openai

from ..config import OpenAIConfig
from ..exceptions import ConfigurationError, LLMProviderError

logger = logging.getLogger(__name__)

# Models that reject max_tokens and expect max_completion_tokens
COMPLETION_TOKEN_PREFIXES = ('gpt-5', 'o1', 'o3', 'o4')


@dataclass
class LLMCallResult:
    """Token usage and latency of one provider call."""
    model: str
    operation: str
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    latency_ms: int = 0
    content: Optional[str] = None

    @property
    def tracked(self) -> bool:
        return self.total_tokens > 0


def uses_completion_tokens(model: str) -> bool:
    return model.startswith(COMPLETION_TOKEN_PREFIXES)


class LLMClient:
    """Wrapper over the ``openai`` SDK that returns usage as ``LLMCallResult``."""

    def __init__(self, config: OpenAIConfig, client: Optional[openai.OpenAI] = None):
        self.config = config
        if client is None:
            if not config.api_key:
                raise ConfigurationError("OPENAI_API_KEY is required for LLM checks")
            client = openai.OpenAI(
                api_key=config.api_key,
                base_url=config.base_url,
                timeout=config.timeout,
            )
        self.client = client

    def chat(self, model: str, messages: List[Dict[str, str]], max_tokens: Optional[int] = None,
             operation: str = "chat_completion", reasoning_effort: Optional[str] = None) -> LLMCallResult:
        """Run one chat completion.

        Args:
            model: Model name
            messages: OpenAI-style message list
            max_tokens: Output cap; sent as max_completion_tokens for reasoning models
            operation: Operation label stored with the usage
            reasoning_effort: Optional effort hint for reasoning models

        Returns:
            Usage and content of the completion
        """
        limit = max_tokens or self.config.max_tokens
        params: Dict[str, Any] = {'model': model, 'messages': messages}
        if uses_completion_tokens(model):
            params['max_completion_tokens'] = limit
            if reasoning_effort:
                params['reasoning_effort'] = reasoning_effort
        else:
            params['max_tokens'] = limit

        start = time.monotonic()
        try:
            completion = self.client.chat.completions.create(**params)
        except openai.OpenAIError as e:
            logger.error(f"Chat completion on {model} failed: {e}")
            raise LLMProviderError(f"{model}: {e}")
        latency_ms = int((time.monotonic() - start) * 1000)

        usage = completion.usage
        content = completion.choices[0].message.content if completion.choices else None
        return LLMCallResult(
            model=getattr(completion, 'model', None) or model,
            operation=operation,
            prompt_tokens=getattr(usage, 'prompt_tokens', 0) or 0,
            completion_tokens=getattr(usage, 'completion_tokens', 0) or 0,
            total_tokens=getattr(usage, 'total_tokens', 0) or 0,
            latency_ms=latency_ms,
            content=content,
        )

    def embed(self, model: str, text: str, operation: str = "embedding") -> LLMCallResult:
        start = time.monotonic()
        try:
            response = self.client.embeddings.create(model=model, input=text)
        except openai.OpenAIError as e:
            logger.error(f"Embedding on {model} failed: {e}")
            raise LLMProviderError(f"{model}: {e}")
        latency_ms = int((time.monotonic() - start) * 1000)

        usage = response.usage
        prompt_tokens = getattr(usage, 'prompt_tokens', 0) or 0
        return LLMCallResult(
            model=getattr(response, 'model', None) or model,
            operation=operation,
            prompt_tokens=prompt_tokens,
            completion_tokens=0,
            total_tokens=getattr(usage, 'total_tokens', 0) or prompt_tokens,
            latency_ms=latency_ms,
        )
