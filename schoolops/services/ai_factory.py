"""AI provider selection with fallback.

Provider construction never raises for configuration problems. Each attempt
yields either ``Available(provider)`` or ``Unavailable(provider_name, reason)``
and ``first_available`` walks an ordered list of attempts until one is usable.
"""

from dataclasses import dataclass, field
from typing import Iterable, Optional, Union

import structlog
from cryptography.fernet import InvalidToken
from sqlalchemy.orm import Session

from schoolops.config.settings import settings
from schoolops.integrations.ai_providers import (
    AIProvider,
    ClaudeProvider,
    DeepSeekProvider,
    GeminiProvider,
    KimiProvider,
)
from schoolops.models import LLMConfiguration
from schoolops.services.encryption import decrypt_value

logger = structlog.get_logger()

PLACEHOLDER_KEYS = {"test_key_for_development_health_check"}

DISPLAY_NAMES = {
    "claude": ClaudeProvider.display_name,
    "gemini": GeminiProvider.display_name,
    "deepseek": DeepSeekProvider.display_name,
    "kimi": KimiProvider.display_name,
}


@dataclass(frozen=True)
class Available:
    provider: AIProvider

    @property
    def provider_name(self) -> str:
        return self.provider.name


@dataclass(frozen=True)
class Unavailable:
    provider_name: str
    reason: str


@dataclass(frozen=True)
class NoProvidersConfigured:
    """Every candidate was unavailable."""

    reasons: list[Unavailable] = field(default_factory=list)

    @property
    def message(self) -> str:
        if not self.reasons:
            return "No AI providers configured"
        details = "; ".join(f"{r.provider_name}: {r.reason}" for r in self.reasons)
        return f"No AI providers configured ({details})"


ProviderResult = Union[Available, Unavailable]
Resolution = Union[Available, NoProvidersConfigured]


def _env_key(provider: str) -> str:
    return {
        "claude": settings.CLAUDE_API_KEY,
        "gemini": settings.GEMINI_API_KEY,
        "deepseek": settings.DEEPSEEK_API_KEY,
        "kimi": settings.KIMI_API_KEY,
    }.get(provider, "")


def key_problem(provider: str, api_key: Optional[str]) -> Optional[str]:
    """Return why `api_key` is unusable for `provider`, or None if it looks valid."""
    key = (api_key or "").strip()
    if not key or key in PLACEHOLDER_KEYS:
        return "API key not configured"
    if provider == "claude" and not key.startswith("sk-ant-"):
        return "Claude API key must start with 'sk-ant-'"
    if provider == "gemini" and len(key) <= 20:
        return "Gemini API key is too short"
    return None


def create_provider(
    provider: str,
    api_key: Optional[str] = None,
    model: Optional[str] = None,
    base_url: Optional[str] = None,
) -> ProviderResult:
    """Build a provider handle; configuration problems become Unavailable."""
    name = (provider or "").strip().lower()
    if name not in DISPLAY_NAMES:
        return Unavailable(name or "unknown", f"Unknown AI provider '{provider}'")

    key = api_key if api_key is not None else _env_key(name)
    problem = key_problem(name, key)
    if problem:
        return Unavailable(name, problem)

    key = key.strip()
    common = {
        "max_tokens": settings.AI_MAX_TOKENS,
        "temperature": settings.AI_TEMPERATURE,
    }
    try:
        if name == "claude":
            handle = ClaudeProvider(key, model or settings.CLAUDE_MODEL, **common)
        elif name == "gemini":
            handle = GeminiProvider(key, model or settings.GEMINI_MODEL, **common)
        elif name == "deepseek":
            handle = DeepSeekProvider(
                key, model or settings.DEEPSEEK_MODEL, base_url or settings.DEEPSEEK_BASE_URL, **common
            )
        else:
            handle = KimiProvider(
                key, model or settings.KIMI_MODEL, base_url or settings.KIMI_BASE_URL, **common
            )
    except Exception as e:
        logger.warning("AI provider construction failed", provider=name, error=str(e))
        return Unavailable(name, f"Initialization failed: {e}")

    return Available(handle)


def first_available(results: Iterable[ProviderResult]) -> Resolution:
    """Return the first Available result, collecting reasons for the rest."""
    reasons = []
    for result in results:
        if isinstance(result, Available):
            return result
        reasons.append(result)
    return NoProvidersConfigured(reasons)


def priority_order(requested: Optional[str] = None) -> list[str]:
    """Requested provider first, then the configured priority, without duplicates."""
    order = []
    for name in ([requested] if requested else []) + list(settings.AI_PROVIDER_PRIORITY):
        name = name.strip().lower()
        if name and name not in order:
            order.append(name)
    return order


def resolve_provider(requested: Optional[str] = None, api_key: Optional[str] = None) -> Resolution:
    """
    Pick a usable provider.

    An explicit `api_key` only applies to the requested provider; the
    fallbacks use their environment keys.
    """
    attempts = (
        create_provider(name, api_key if (requested and name == requested.strip().lower()) else None)
        for name in priority_order(requested)
    )
    resolution = first_available(attempts)

    if isinstance(resolution, Available):
        if requested and resolution.provider_name != requested.strip().lower():
            logger.info(
                "Falling back to alternate AI provider",
                requested=requested,
                selected=resolution.provider_name,
            )
    else:
        logger.warning("No AI providers available", reasons=[r.reason for r in resolution.reasons])
    return resolution


def provider_from_configuration(config: LLMConfiguration) -> ProviderResult:
    """Build a provider from a stored configuration, decrypting its key."""
    if config.api_key is None or not config.api_key.encrypted_key:
        return Unavailable(config.provider, "Configuration has no API key")
    try:
        api_key = decrypt_value(config.api_key.encrypted_key)
    except InvalidToken:
        return Unavailable(config.provider, "Stored API key could not be decrypted")
    return create_provider(config.provider, api_key, model=config.model, base_url=config.base_url)


def resolve_provider_from_config(db: Session, requested: Optional[str] = None) -> Resolution:
    """Prefer the default active stored configuration, then environment keys."""
    config = (
        db.query(LLMConfiguration)
        .filter(LLMConfiguration.is_default.is_(True), LLMConfiguration.is_active.is_(True))
        .first()
    )
    if config is not None and (not requested or config.provider == requested):
        result = provider_from_configuration(config)
        if isinstance(result, Available):
            return result
        logger.warning(
            "Default LLM configuration unusable",
            configuration_id=config.id,
            reason=result.reason,
        )

    return resolve_provider(requested)


def provider_statuses() -> list[dict]:
    """Availability of every known provider, from environment keys."""
    statuses = []
    for name in priority_order():
        if name not in DISPLAY_NAMES:
            continue
        result = create_provider(name)
        statuses.append(
            {
                "name": name,
                "display_name": DISPLAY_NAMES[name],
                "available": isinstance(result, Available),
                "reason": result.reason if isinstance(result, Unavailable) else None,
            }
        )
    return statuses
