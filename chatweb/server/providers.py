"""
Provider selection for the completion proxy.

Known model ids are an enumeration mapped to the provider that serves them.
Each provider is described once at startup (endpoint, key, fixed sampling
parameters, optional system instruction) and owns a single AsyncOpenAI
client shared by all requests.
"""

from enum import Enum
from typing import Dict, List, Optional

from openai import AsyncOpenAI
from pydantic import BaseModel, ConfigDict

from chatweb.config import Config
from chatweb.logging_config import get_loggers
from chatweb.server.errors import ProviderUnavailableError, UnknownModelError
from chatweb.server.models import ChatTurn, ModelCatalog, ModelInfo
from chatweb.server.parsing import SystemPrompt

app_logger, _, _ = get_loggers()

DEEPSEEK_MARKER = "deepseek"


class ProviderKind(str, Enum):
    ANTHROPIC = "anthropic"
    DEEPSEEK = "deepseek"


class ModelId(str, Enum):
    CLAUDE_3_5_SONNET = "claude-3-5-sonnet-20241022"
    CLAUDE_3_HAIKU = "claude-3-haiku-20240307"
    DEEPSEEK_CHAT = "deepseek-chat"
    DEEPSEEK_REASONER = "deepseek-reasoner"


class ModelSpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: ModelId
    name: str
    description: str
    provider: ProviderKind


MODEL_CATALOG: Dict[ModelId, ModelSpec] = {
    spec.id: spec
    for spec in (
        ModelSpec(
            id=ModelId.CLAUDE_3_5_SONNET,
            name="Claude 3.5 Sonnet",
            description="The latest Claude 3.5 model with stronger conversational ability",
            provider=ProviderKind.ANTHROPIC,
        ),
        ModelSpec(
            id=ModelId.CLAUDE_3_HAIKU,
            name="Claude 3 Haiku",
            description="A lightweight, fast Claude model suited to simple conversations",
            provider=ProviderKind.ANTHROPIC,
        ),
        ModelSpec(
            id=ModelId.DEEPSEEK_CHAT,
            name="DeepSeek Chat",
            description="DeepSeek general-purpose chat model",
            provider=ProviderKind.DEEPSEEK,
        ),
        ModelSpec(
            id=ModelId.DEEPSEEK_REASONER,
            name="DeepSeek Reasoner",
            description="DeepSeek model tuned for step-by-step reasoning",
            provider=ProviderKind.DEEPSEEK,
        ),
    )
}

KNOWN_MODEL_IDS = frozenset(m.value for m in ModelId)


class ProviderDescriptor(BaseModel):
    """Endpoint, credentials and fixed request parameters of one provider."""

    model_config = ConfigDict(frozen=True)

    kind: ProviderKind
    base_url: str
    api_key: Optional[str] = None
    temperature: float
    max_tokens: int
    system_prompt: Optional[str] = None

    @property
    def available(self) -> bool:
        return bool(self.api_key)


class ProviderRoute:
    """The provider client and parameters chosen for one request."""

    def __init__(self, model: str, descriptor: ProviderDescriptor, client: AsyncOpenAI):
        self.model = model
        self.descriptor = descriptor
        self.client = client

    @property
    def provider(self) -> ProviderKind:
        return self.descriptor.kind

    def build_messages(self, turns: List[ChatTurn]) -> List[dict]:
        """Outgoing message list, with the system instruction first when set."""
        messages = []
        if self.descriptor.system_prompt:
            messages.append({"role": "system", "content": self.descriptor.system_prompt})
        messages.extend({"role": t.role, "content": t.content} for t in turns)
        return messages


def classify_model(model: str) -> ProviderKind:
    """Maps a model id to a provider: catalog first, then the naming pattern."""
    try:
        return MODEL_CATALOG[ModelId(model)].provider
    except ValueError:
        pass
    if DEEPSEEK_MARKER in model.lower():
        return ProviderKind.DEEPSEEK
    return ProviderKind.ANTHROPIC


class ProviderRegistry:
    """Provider descriptors and their clients, built once at startup."""

    def __init__(
        self,
        descriptors: Dict[ProviderKind, ProviderDescriptor],
        strict: bool = False,
    ):
        self.descriptors = descriptors
        self.strict = strict
        self._clients: Dict[ProviderKind, AsyncOpenAI] = {}
        for kind, descriptor in descriptors.items():
            if not descriptor.available:
                app_logger.warning(
                    f"No API key configured for provider '{kind.value}'; "
                    "its models are unavailable."
                )
                continue
            # Retries are disabled: a failed turn is reported, never replayed.
            self._clients[kind] = AsyncOpenAI(
                api_key=descriptor.api_key,
                base_url=descriptor.base_url,
                max_retries=0,
            )
            app_logger.info(
                f"Provider client initialized for '{kind.value}'",
                extra={
                    "base_url": descriptor.base_url,
                    "temperature": descriptor.temperature,
                    "max_tokens": descriptor.max_tokens,
                    "system_prompt": bool(descriptor.system_prompt),
                },
            )

    @classmethod
    def from_config(cls, config: Config, system_prompt: SystemPrompt) -> "ProviderRegistry":
        """
        Builds the registry from configuration.

        Raises:
            ConfigurationError: If the default provider has no API key.
        """
        config.require_provider_keys()

        def prompt_for(kind: ProviderKind) -> Optional[str]:
            return system_prompt.text if system_prompt.applies_to(kind.value) else None

        descriptors = {
            ProviderKind.ANTHROPIC: ProviderDescriptor(
                kind=ProviderKind.ANTHROPIC,
                base_url=config.anthropic_base_url,
                api_key=config.anthropic_api_key,
                temperature=config.anthropic_temperature,
                max_tokens=config.anthropic_max_tokens,
                system_prompt=prompt_for(ProviderKind.ANTHROPIC),
            ),
            ProviderKind.DEEPSEEK: ProviderDescriptor(
                kind=ProviderKind.DEEPSEEK,
                base_url=config.deepseek_base_url,
                api_key=config.deepseek_api_key,
                temperature=config.deepseek_temperature,
                max_tokens=config.deepseek_max_tokens,
                system_prompt=prompt_for(ProviderKind.DEEPSEEK),
            ),
        }
        return cls(descriptors, strict=config.strict_models)

    def resolve(self, model: str) -> ProviderRoute:
        """
        Picks the provider route for a model id.

        Raises:
            UnknownModelError: In strict mode, for ids outside the catalog.
            ProviderUnavailableError: If the provider has no client.
        """
        if model not in KNOWN_MODEL_IDS:
            if self.strict:
                raise UnknownModelError(f"Unknown model '{model}'")
            app_logger.warning(
                f"Model '{model}' is not in the catalog; routing by name pattern."
            )

        kind = classify_model(model)
        client = self._clients.get(kind)
        if client is None:
            raise ProviderUnavailableError(
                f"Provider '{kind.value}' is not configured for model '{model}'"
            )
        return ProviderRoute(model, self.descriptors[kind], client)

    def catalog(self, default_model: str) -> ModelCatalog:
        return ModelCatalog(
            default=default_model,
            models=[
                ModelInfo(
                    id=spec.id.value,
                    name=spec.name,
                    description=spec.description,
                    provider=spec.provider.value,
                    available=spec.provider in self._clients,
                )
                for spec in MODEL_CATALOG.values()
            ],
        )

    async def close(self) -> None:
        for client in self._clients.values():
            await client.close()
        self._clients.clear()
