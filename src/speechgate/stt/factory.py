"""Factory for building engine adapters and the selector from config."""

import logging
from typing import Iterable, Optional

from speechgate.core.config import AppConfig
from speechgate.core.exceptions import ConfigError, UnknownEngineError
from speechgate.stt.base import STTEngine
from speechgate.stt.models import EngineId

logger = logging.getLogger(__name__)


def parse_engine_id(value) -> EngineId:
    """Accept an EngineId or its string value."""
    if isinstance(value, EngineId):
        return value
    try:
        return EngineId(str(value).strip().lower())
    except ValueError:
        valid = ", ".join(e.value for e in EngineId)
        raise UnknownEngineError(f"Unknown engine '{value}'. Valid engines: {valid}") from None


def create_stt_engine(engine_id: EngineId, config: AppConfig) -> STTEngine:
    """Create one adapter. Imports are lazy so unused SDKs are never loaded."""
    cfg = config.engine_settings(engine_id.value)
    sample_rate = config.audio.sample_rate

    if engine_id is EngineId.LOCAL_MODEL:
        from speechgate.stt.local_whisper import LocalWhisperSTT

        return LocalWhisperSTT(
            model_size=cfg.get("model_size", "base"),
            device=cfg.get("device", "cpu"),
            compute_type=cfg.get("compute_type", "int8"),
            beam_size=cfg.get("beam_size", 5),
            download_root=cfg.get("download_root"),
            sample_rate=sample_rate,
        )

    if engine_id is EngineId.OPENAI:
        from speechgate.stt.openai_engine import DEFAULT_BASE_URL, OpenAIWhisperSTT

        return OpenAIWhisperSTT(
            api_key=cfg.get("api_key"),
            model=cfg.get("model", "whisper-1"),
            base_url=cfg.get("base_url", DEFAULT_BASE_URL),
            request_timeout=cfg.get("request_timeout", 30),
            sample_rate=sample_rate,
        )

    if engine_id is EngineId.AZURE:
        from speechgate.stt.azure_engine import AzureSpeechSTT

        return AzureSpeechSTT(
            subscription_key=cfg.get("subscription_key"),
            region=cfg.get("region"),
            default_locale=cfg.get("default_locale", "en-US"),
            profanity=cfg.get("profanity", "masked"),
            request_timeout=cfg.get("request_timeout", 30),
            sample_rate=sample_rate,
        )

    if engine_id is EngineId.GOOGLE:
        from speechgate.stt.google_engine import DEFAULT_BASE_URL, GoogleSpeechSTT

        return GoogleSpeechSTT(
            api_key=cfg.get("api_key"),
            base_url=cfg.get("base_url", DEFAULT_BASE_URL),
            default_locale=cfg.get("default_locale", "en-US"),
            enable_punctuation=cfg.get("enable_punctuation", True),
            request_timeout=cfg.get("request_timeout", 30),
            sample_rate=sample_rate,
        )

    # Default: OS-native
    from speechgate.stt.windows_engine import WindowsSpeechSTT

    return WindowsSpeechSTT()


def create_stt_engines(config: AppConfig) -> list[STTEngine]:
    """Create every enabled adapter, in declared priority order."""
    engines = []
    for engine_id in resolve_priority(config.selector.priority):
        cfg = config.engines.get(engine_id.value) or {}
        if not cfg.get("enabled", True):
            logger.info(f"Engine {engine_id} disabled in config")
            continue
        engines.append(create_stt_engine(engine_id, config))
    logger.info(f"STT engines: {', '.join(str(e.engine_id) for e in engines) or 'none'}")
    return engines


def resolve_priority(priority: Iterable, registered: Optional[Iterable[EngineId]] = None) -> list[EngineId]:
    """Turn a configured priority list into a complete, duplicate-free order.

    Engines missing from ``priority`` are appended in their registration (or
    enum) order, so every registered engine gets a place.
    """
    order: list[EngineId] = []
    for value in priority:
        try:
            engine_id = parse_engine_id(value)
        except UnknownEngineError as e:
            raise ConfigError(f"selector.priority: {e}") from None
        if engine_id not in order:
            order.append(engine_id)

    pool = list(registered) if registered is not None else list(EngineId)
    order = [e for e in order if e in pool]
    order.extend(e for e in pool if e not in order)
    return order


def create_selector(config: AppConfig):
    """Build an EngineSelector wired with every enabled engine."""
    from speechgate.stt.selector import EngineSelector

    return EngineSelector(
        create_stt_engines(config),
        priority=config.selector.priority,
        preferred_engine=config.selector.preferred_engine,
        init_timeout=config.selector.init_timeout,
        transcribe_timeout=config.selector.transcribe_timeout,
        status_timeout=config.selector.status_timeout,
        max_workers=config.selector.max_workers,
    )
