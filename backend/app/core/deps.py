import logging
from functools import lru_cache

from fastapi import Depends

from app.core.config import Settings, get_settings
from app.services.providers import (
    GeminiProvider,
    OpenAICompatibleProvider,
    RelayProvider,
    StudyPlanProvider,
)
from app.services.retry import RetryPolicy
from app.services.session import StudySession
from app.services.study_plan import StudyPlanGenerator

logger = logging.getLogger("examprep.deps")


def build_provider(settings: Settings, kind: str) -> StudyPlanProvider:
    """Construct the transport named by ``kind`` from settings."""
    if kind == "gemini":
        return GeminiProvider(
            api_key=settings.gemini_api_key,
            model=settings.gemini_model,
            temperature=settings.generation_temperature,
        )
    if kind == "openai":
        return OpenAICompatibleProvider(
            api_key=settings.openai_api_key,
            model=settings.openai_model,
            base_url=settings.openai_base_url or None,
            temperature=settings.generation_temperature,
        )
    if kind == "relay":
        return RelayProvider(url=settings.relay_url, timeout=settings.relay_timeout_s)
    raise ValueError(f"Unknown LLM provider: {kind}")


def build_generator(settings: Settings, provider: StudyPlanProvider) -> StudyPlanGenerator:
    return StudyPlanGenerator(
        provider=provider,
        retry_policy=RetryPolicy(
            max_retries=settings.retry_max_retries,
            initial_delay=settings.retry_initial_delay_s,
        ),
        max_file_size_bytes=settings.max_file_size_bytes,
    )


@lru_cache
def get_llm_provider() -> StudyPlanProvider:
    """Return the active provider based on the llm_provider setting."""
    settings = get_settings()
    provider = build_provider(settings, settings.llm_provider)
    logger.info("Using %s provider (%s)", settings.llm_provider, provider.name)
    return provider


@lru_cache
def get_relay_upstream_provider() -> StudyPlanProvider:
    """Provider the relay endpoint calls; never the relay itself."""
    settings = get_settings()
    return build_provider(settings, settings.relay_upstream_provider)


def get_study_plan_generator(
    provider: StudyPlanProvider = Depends(get_llm_provider),
    settings: Settings = Depends(get_settings),
) -> StudyPlanGenerator:
    return build_generator(settings, provider)


def get_relay_generator(
    provider: StudyPlanProvider = Depends(get_relay_upstream_provider),
    settings: Settings = Depends(get_settings),
) -> StudyPlanGenerator:
    return build_generator(settings, provider)


@lru_cache
def get_study_session() -> StudySession:
    return StudySession()
