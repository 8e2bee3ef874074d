"""
The completion proxy: one conversation in, one reply text out.
"""

import time
from typing import Optional

import openai

from chatweb.logging_config import get_loggers
from chatweb.server.errors import EmptyCompletionError, UpstreamError
from chatweb.server.models import ChatRequest
from chatweb.server.providers import ProviderKind, ProviderRegistry

app_logger, _, _ = get_loggers()


class Completion:
    """The reply text plus the figures the access log reports."""

    def __init__(
        self,
        text: str,
        model: str,
        provider: ProviderKind,
        prompt_tokens: int = 0,
        completion_tokens: int = 0,
        duration: Optional[float] = None,
    ):
        self.text = text
        self.model = model
        self.provider = provider
        self.prompt_tokens = prompt_tokens
        self.completion_tokens = completion_tokens
        self.duration = duration


class CompletionProxy:
    """Forwards a validated chat request to the provider its model maps to."""

    def __init__(self, registry: ProviderRegistry, default_model: str):
        self.registry = registry
        self.default_model = default_model

    async def complete(self, chat_request: ChatRequest) -> Completion:
        """
        Runs a single non-streaming chat completion.

        Raises:
            UnknownModelError, ProviderUnavailableError: From provider lookup.
            UpstreamError: If the provider call fails.
            EmptyCompletionError: If the provider returns no content.
        """
        model = chat_request.model or self.default_model
        route = self.registry.resolve(model)
        messages = route.build_messages(chat_request.messages)

        app_logger.info(
            "Sending request to API",
            extra={
                "model": model,
                "provider": route.provider.value,
                "messages_count": len(messages),
            },
        )

        start_time = time.perf_counter()
        try:
            response = await route.client.chat.completions.create(
                model=model,
                messages=messages,
                temperature=route.descriptor.temperature,
                max_tokens=route.descriptor.max_tokens,
                stream=False,
            )
        except openai.APIConnectionError as e:
            app_logger.exception(f"API connection error for model '{model}':")
            raise UpstreamError(f"API connection error: {e}") from e
        except openai.APIStatusError as e:
            app_logger.exception(
                f"API status error (code {e.status_code}) for model '{model}': {e.message}"
            )
            raise UpstreamError(
                f"API error (status {e.status_code}): {e.message}",
                details=str(e.body) if e.body else None,
            ) from e
        except openai.APIError as e:
            app_logger.exception(f"API error for model '{model}':")
            raise UpstreamError(f"API error: {e}") from e
        duration = time.perf_counter() - start_time

        choices = getattr(response, "choices", None)
        message = choices[0].message if choices else None
        content = getattr(message, "content", None)
        if not content:
            app_logger.error(
                "Provider returned no choice content",
                extra={"model": model, "choices": len(choices or [])},
            )
            raise EmptyCompletionError("Invalid response from API")

        usage = getattr(response, "usage", None)
        completion = Completion(
            text=content,
            model=model,
            provider=route.provider,
            prompt_tokens=getattr(usage, "prompt_tokens", 0) or 0,
            completion_tokens=getattr(usage, "completion_tokens", 0) or 0,
            duration=duration,
        )
        app_logger.info(
            "Received response from API",
            extra={
                "model": model,
                "duration": f"{duration:.3f}s",
                "response_chars": len(content),
            },
        )
        return completion
