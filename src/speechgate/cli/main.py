"""CLI entry point for SpeechGate."""

import logging
import sys
import threading
from pathlib import Path

import click

from speechgate import __version__

logger = logging.getLogger(__name__)

PROFILES = ["offline", "cloud"]


@click.group()
@click.version_option(version=__version__)
def main():
    """SpeechGate: one speech-to-text contract over local and cloud engines."""
    pass


def _load(config, profile):
    """Load config and set up logging, exiting on a bad config."""
    from speechgate.core.config import AppConfig
    from speechgate.core.logging import setup_logging

    try:
        app_config = AppConfig.load(config_path=config, profile=profile)
    except Exception as e:
        click.echo(f"Error loading config: {e}", err=True)
        sys.exit(1)

    log_cfg = app_config.logging
    setup_logging(
        level=log_cfg.get("level", "INFO"),
        log_file=log_cfg.get("file", "speechgate.log"),
    )
    return app_config


def config_options(fn):
    fn = click.option("--config", "-c", default=None,
                      help="Path to custom config YAML")(fn)
    fn = click.option("--profile", "-p", default=None,
                      type=click.Choice(PROFILES),
                      help="Config profile")(fn)
    return fn


@main.command()
@config_options
def engines(profile, config):
    """List the engines enabled by the config, in priority order."""
    from speechgate.stt.factory import create_stt_engines

    app_config = _load(config, profile)
    click.echo(f"Profile: {app_config.profile}")
    for i, engine in enumerate(create_stt_engines(app_config), 1):
        d = engine.descriptor
        caps = d.capabilities
        flags = [
            name for name, on in (
                ("interim", caps.supports_interim_results),
                ("diarization", caps.supports_speaker_diarization),
                ("word-timing", caps.supports_word_timing),
                ("multilingual", caps.supports_multiple_languages),
            ) if on
        ]
        network = "cloud" if d.requires_network else "local"
        click.echo(f"  {i}. {d.engine_id:<12} {d.name} [{network}] {', '.join(flags) or '-'}")


@main.command()
@config_options
def status(profile, config):
    """Check availability of every engine."""
    from speechgate.stt.factory import create_selector

    app_config = _load(config, profile)
    with create_selector(app_config) as selector:
        for s in selector.get_all_engine_status():
            mark = "OK  " if s.is_available else "FAIL"
            version = f" ({s.version})" if s.version else ""
            click.echo(f"  [{mark}] {s.engine_id:<12} {s.message}{version}")

        best = selector.get_best_available_engine()
    click.echo()
    if best is None:
        click.echo("No engine is available.", err=True)
        sys.exit(1)
    click.echo(f"Best available: {best}")


@main.command()
@click.argument("audio_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--engine", "-e", default=None, help="Preferred engine (e.g. local-model, openai)")
@click.option("--language", "-l", default=None, help="Language code, e.g. en or uk")
@config_options
def transcribe(audio_file, engine, language, profile, config):
    """Transcribe an audio file (WAV/FLAC/OGG or raw 16-bit PCM)."""
    from speechgate.core.exceptions import SelectorError
    from speechgate.stt.factory import create_selector

    app_config = _load(config, profile)
    audio = audio_file.read_bytes()
    if not audio:
        click.echo(f"{audio_file} is empty", err=True)
        sys.exit(1)

    cancel = threading.Event()
    with create_selector(app_config) as selector:
        try:
            engine_id = selector.initialize(preferred_engine=engine)
        except SelectorError as e:
            click.echo(f"Initialization error: {e}", err=True)
            sys.exit(1)
        click.echo(f"Engine: {engine_id}", err=True)

        try:
            result = selector.transcribe(audio, language=language or app_config.language,
                                         cancel_event=cancel)
        except KeyboardInterrupt:
            cancel.set()
            click.echo("Cancelled.", err=True)
            sys.exit(130)

    if not result.success:
        click.echo(f"Transcription failed ({result.error_kind.value}): {result.error_message}", err=True)
        sys.exit(1)

    click.echo(result.text)
    click.echo(
        f"[{result.engine} | confidence {result.confidence:.2f} | "
        f"{result.word_count} words | {result.processing_time:.2f}s]",
        err=True,
    )


if __name__ == "__main__":
    main()
