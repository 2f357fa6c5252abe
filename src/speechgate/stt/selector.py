"""Engine selection with fallback over a fixed set of speech engines.

The selector owns the registered adapters and the notion of a *current*
engine:

- ``initialize`` walks the declared priority order (preferred engine first)
  and keeps the first engine that reports available and initializes.
- ``switch_engine`` makes one named engine current, or leaves everything as
  it was and raises ``EngineUnavailableError``. It never falls back.
- ``transcribe`` delegates to the current engine and always returns a
  ``TranscriptionResult``; adapter errors, timeouts and cancellation become
  failed results. It never retries on another engine.
- ``start_listening``, ``feed_audio`` and ``stop_listening`` stream PCM to an
  engine that supports continuous recognition. Each recognized segment is
  returned and delivered to listeners as ``speech_recognized``.
- ``get_all_engine_status`` fans out to every adapter concurrently and never
  raises.

Every adapter call runs on a worker pool and is bounded by a timeout.
"""

import logging
import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from concurrent.futures import TimeoutError as FutureTimeoutError
from functools import partial
from typing import Callable, Iterable, Optional, Union

from speechgate.core.constants import (
    CANCEL_POLL_INTERVAL,
    DEFAULT_INIT_TIMEOUT,
    DEFAULT_MAX_WORKERS,
    DEFAULT_PRIORITY,
    DEFAULT_STATUS_TIMEOUT,
    DEFAULT_TRANSCRIBE_TIMEOUT,
)
from speechgate.core.exceptions import (
    ConfigError,
    EngineTimeoutError,
    EngineUnavailableError,
    NoEngineAvailableError,
    NotInitializedError,
    STTError,
    TranscriptionCancelledError,
    UnknownEngineError,
)
from speechgate.core.state import SelectionSnapshot, SelectionState, SelectorPhase
from speechgate.stt.base import STTEngine
from speechgate.stt.factory import parse_engine_id, resolve_priority
from speechgate.stt.models import (
    EngineId,
    EngineStatus,
    ErrorKind,
    TranscriptionRequest,
    TranscriptionResult,
)

logger = logging.getLogger(__name__)

EngineRef = Union[EngineId, str]


class EngineSelector:
    """One transcription contract over many engine adapters."""

    def __init__(
        self,
        engines: Iterable[STTEngine],
        priority: Iterable[EngineRef] = DEFAULT_PRIORITY,
        preferred_engine: Optional[EngineRef] = None,
        init_timeout: float = DEFAULT_INIT_TIMEOUT,
        transcribe_timeout: float = DEFAULT_TRANSCRIBE_TIMEOUT,
        status_timeout: float = DEFAULT_STATUS_TIMEOUT,
        max_workers: int = DEFAULT_MAX_WORKERS,
    ):
        self._engines: dict[EngineId, STTEngine] = {}
        for engine in engines:
            if engine.engine_id in self._engines:
                raise ConfigError(f"Engine {engine.engine_id} registered twice")
            self._engines[engine.engine_id] = engine

        self._priority = resolve_priority(priority, self._engines)
        self._preferred = parse_engine_id(preferred_engine) if preferred_engine else None
        self._init_timeout = init_timeout
        self._transcribe_timeout = transcribe_timeout
        self._status_timeout = status_timeout

        self._state = SelectionState()
        # Serializes initialize/switch_engine; transcribe and status never take it
        self._setup_lock = threading.Lock()
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="speechgate"
        )
        self._listeners: list[Callable] = []

    # ---- Properties ----

    @property
    def engines(self) -> list[EngineId]:
        """Registered engines in registration order."""
        return list(self._engines)

    @property
    def priority(self) -> list[EngineId]:
        return list(self._priority)

    @property
    def state(self) -> SelectorPhase:
        return self._state.snapshot.phase

    @property
    def current_engine_id(self) -> Optional[EngineId]:
        return self._state.snapshot.engine_id

    @property
    def current_engine(self) -> Optional[STTEngine]:
        return self._state.snapshot.engine

    @property
    def is_initialized(self) -> bool:
        engine = self._state.snapshot.engine
        return engine is not None and engine.is_initialized

    @property
    def is_listening(self) -> bool:
        engine = self._state.snapshot.engine
        if engine is None or not engine.descriptor.capabilities.supports_interim_results:
            return False
        return engine.is_listening

    @property
    def failures(self) -> dict:
        """Failure reasons recorded by the last initialize()."""
        return dict(self._state.snapshot.failures)

    def get_engine(self, engine_id: EngineRef) -> STTEngine:
        engine_id = parse_engine_id(engine_id)
        engine = self._engines.get(engine_id)
        if engine is None:
            raise UnknownEngineError(f"Engine '{engine_id}' is not registered")
        return engine

    # ---- Event System ----

    def add_listener(self, callback: Callable) -> None:
        """Register ``callback(event_type, data)`` for selector events."""
        self._listeners.append(callback)

    def remove_listener(self, callback: Callable) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    def _emit(self, event_type: str, data: dict) -> None:
        for cb in list(self._listeners):
            try:
                cb(event_type, data)
            except Exception as e:
                logger.error(f"Selector listener error ({event_type}): {e}")

    def _emit_all(self, events: list) -> None:
        """Deliver events queued during setup. Never called under the setup lock."""
        for event_type, data in events:
            self._emit(event_type, data)

    # ---- Setup ----

    def initialize(self, preferred_engine: Optional[EngineRef] = None) -> EngineId:
        """Make the best available engine current.

        The preferred engine (argument, else the configured one) is tried
        first, then the remaining engines in priority order. Returns the
        engine that became current; raises ``NoEngineAvailableError`` when
        every engine fails.

        An explicit ``preferred_engine`` that is not registered raises
        ``UnknownEngineError``. A configured one that is not registered
        (disabled in config, say) is logged and skipped.
        """
        if preferred_engine is not None:
            target = self.get_engine(preferred_engine).engine_id
        elif self._preferred is not None and self._preferred not in self._engines:
            logger.warning(
                f"Configured preferred engine {self._preferred} is not registered; "
                f"using priority order"
            )
            target = None
        else:
            target = self._preferred

        events: list = []
        try:
            with self._setup_lock:
                return self._initialize_locked(target, events)
        finally:
            self._emit_all(events)

    def _initialize_locked(self, target: Optional[EngineId], events: list) -> EngineId:
        current = self._state.snapshot
        if (
            target is not None
            and current.engine_id == target
            and current.engine.is_initialized
        ):
            logger.info(f"Engine {target} already initialized")
            return target

        candidates = [target] if target is not None else []
        candidates += [e for e in self._priority if e != target]
        logger.info(
            f"Initializing speech recognition (order: {', '.join(map(str, candidates))})"
        )

        previous = self._state.begin_initializing()
        failures: dict[EngineId, str] = {}
        for engine_id in candidates:
            engine = self._engines[engine_id]
            try:
                self._prepare(engine)
            except Exception as e:
                reason = _reason(e)
                failures[engine_id] = reason
                if engine_id == target:
                    logger.warning(f"Preferred engine {engine_id} failed ({reason}), trying fallback")
                else:
                    logger.warning(f"Engine {engine_id} failed to initialize: {reason}")
                continue

            self._activate(engine_id, engine, previous, failures, events)
            if failures:
                logger.info(f"Initialized fallback engine: {engine_id}")
            else:
                logger.info(f"Initialized speech recognition engine: {engine_id}")
            return engine_id

        self._state.mark_failed(failures)
        self._stop_listening_quietly(previous.engine)
        logger.error(f"No speech recognition engine could be initialized ({len(failures)} tried)")
        events.append(("initialization_failed", {
            "failures": {str(k): v for k, v in failures.items()},
        }))
        raise NoEngineAvailableError(failures)

    def switch_engine(self, engine_id: EngineRef) -> EngineId:
        """Make ``engine_id`` current. On failure nothing changes.

        Raises ``UnknownEngineError`` for an unregistered engine and
        ``EngineUnavailableError`` when the engine cannot be used.
        """
        engine = self.get_engine(engine_id)
        engine_id = engine.engine_id
        logger.info(f"Switching to speech recognition engine: {engine_id}")

        events: list = []
        try:
            with self._setup_lock:
                current = self._state.snapshot
                if current.engine_id == engine_id and engine.is_initialized:
                    logger.debug(f"Engine {engine_id} is already active")
                    return engine_id

                try:
                    self._prepare(engine)
                except EngineUnavailableError:
                    raise
                except Exception as e:
                    logger.warning(f"Cannot switch to {engine_id}: {_reason(e)}")
                    raise EngineUnavailableError(
                        engine_id, _reason(e), is_configuration_error=isinstance(e, ConfigError)
                    ) from e

                self._activate(engine_id, engine, current, {}, events)
                logger.info(f"Switched to speech engine: {engine_id}")
                return engine_id
        finally:
            self._emit_all(events)

    def _prepare(self, engine: STTEngine) -> None:
        """Check availability, then initialize the engine if needed."""
        status = self._collect_status(
            engine.engine_id,
            self._executor.submit(engine.get_status),
            time.monotonic() + self._status_timeout,
        )
        if not status.is_available:
            raise EngineUnavailableError(
                engine.engine_id, status.message or "unavailable", is_configuration_error=True
            )
        if not engine.is_initialized:
            self._call(engine.initialize, self._init_timeout, f"{engine.descriptor.name} initialization")

    def _activate(
        self,
        engine_id: EngineId,
        engine: STTEngine,
        previous: SelectionSnapshot,
        failures: dict,
        events: list,
    ) -> None:
        """Publish the new current engine, carrying continuous listening across.

        Events are queued on ``events`` for delivery once the setup lock is
        released, so listeners may call back into the selector.
        """
        old = previous.engine
        was_listening = old is not None and old is not engine and old.is_listening
        if was_listening:
            self._stop_listening_quietly(old)

        self._state.mark_ready(engine_id, engine, failures)

        if was_listening:
            try:
                engine.start_listening()
            except STTError as e:
                logger.warning(f"Could not resume listening on {engine_id}: {e}")

        if previous.engine_id != engine_id:
            events.append(("engine_changed", {
                "engine": str(engine_id),
                "previous": str(previous.engine_id) if previous.engine_id else None,
            }))

    def _call(self, fn: Callable, timeout: float, description: str):
        future = self._executor.submit(fn)
        try:
            return future.result(timeout=timeout)
        except FutureTimeoutError:
            future.cancel()
            raise EngineTimeoutError(f"{description} did not finish within {timeout:g}s") from None

    # ---- Transcription ----

    def transcribe(
        self,
        audio: Union[bytes, TranscriptionRequest],
        language: Optional[str] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> TranscriptionResult:
        """Transcribe with the current engine.

        Raises ``NotInitializedError`` when no engine is current (the
        ``NoEngineAvailableError`` subclass after a failed initialize) and
        ``ValueError`` for an empty payload. Everything that goes wrong inside
        the engine comes back as a failed result instead.
        """
        snapshot = self._state.snapshot
        engine = snapshot.engine
        if engine is None:
            if snapshot.phase is SelectorPhase.FAILED:
                raise NoEngineAvailableError(snapshot.failures)
            raise NotInitializedError(
                "No speech recognition engine is initialized. Call initialize() first."
            )

        if isinstance(audio, TranscriptionRequest):
            request = audio
        else:
            if not audio:
                raise ValueError("audio payload is empty")
            request = TranscriptionRequest(audio=bytes(audio), language=language)

        engine_id = snapshot.engine_id
        # The same event reaches the adapter, so a cancel or timeout stops it too
        cancel = cancel_event if cancel_event is not None else threading.Event()
        logger.debug(f"Transcribing {len(request.audio)} bytes with {engine_id}")

        result = self._run_transcription(
            engine_id,
            partial(engine.transcribe, request.audio, request.language, cancel),
            request.language,
            cancel,
        )
        self._report(engine_id, result)
        return result

    def _report(self, engine_id: EngineId, result: TranscriptionResult, streamed: bool = False) -> None:
        if result.success:
            logger.debug(
                f"{engine_id} transcription: {result.word_count} words, "
                f"confidence={result.confidence:.2f}, {result.processing_time:.2f}s"
            )
            if streamed:
                self._emit("speech_recognized", {
                    "engine": str(engine_id),
                    "text": result.text,
                    "confidence": result.confidence,
                    "language": result.language,
                })
        else:
            logger.warning(f"{engine_id} transcription failed: {result.error_message}")
            self._emit("transcription_failed", {
                "engine": str(engine_id),
                "kind": result.error_kind.value if result.error_kind else None,
                "message": result.error_message,
            })

    def _run_transcription(
        self,
        engine_id: EngineId,
        call: Callable[[], Optional[TranscriptionResult]],
        language: Optional[str],
        cancel: threading.Event,
        streamed: bool = False,
    ) -> Optional[TranscriptionResult]:
        """Run an adapter call on the pool, bounded by the transcribe timeout.

        A streamed call may legitimately return None (segment still filling).
        """
        started = time.monotonic()

        def failed(message: str, kind: ErrorKind) -> TranscriptionResult:
            return TranscriptionResult.failure(
                message,
                engine=engine_id,
                kind=kind,
                processing_time=time.monotonic() - started,
                language=language,
            )

        if cancel.is_set():
            return failed("Transcription cancelled", ErrorKind.CANCELLED)

        try:
            future = self._executor.submit(call)
        except RuntimeError as e:
            # Pool already shut down
            return failed(f"Selector is shut down: {e}", ErrorKind.TRANSCRIPTION_FAILED)

        outcome = self._wait_for(future, cancel, started + self._transcribe_timeout)
        if outcome is ErrorKind.CANCELLED:
            return failed("Transcription cancelled", ErrorKind.CANCELLED)
        if outcome is ErrorKind.TIMEOUT:
            # Drop the call if it never left the queue; a running one sees the event
            future.cancel()
            cancel.set()
            return failed(
                f"Transcription timed out after {self._transcribe_timeout:g}s", ErrorKind.TIMEOUT
            )

        try:
            result = future.result()
        except TranscriptionCancelledError:
            return failed("Transcription cancelled", ErrorKind.CANCELLED)
        except EngineTimeoutError as e:
            return failed(str(e), ErrorKind.TIMEOUT)
        except Exception as e:
            logger.error(f"{engine_id} transcription error: {e}", exc_info=True)
            return failed(_reason(e), ErrorKind.TRANSCRIPTION_FAILED)

        if result is None and streamed:
            return None
        if not isinstance(result, TranscriptionResult):
            return failed(
                f"{engine_id} returned {type(result).__name__} instead of a result",
                ErrorKind.TRANSCRIPTION_FAILED,
            )
        return result

    @staticmethod
    def _wait_for(future: Future, cancel: threading.Event, deadline: float) -> Optional[ErrorKind]:
        """Wait for the adapter, checking for cancellation as we go.

        Returns None once the future is done, or the kind of interruption.
        """
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return ErrorKind.TIMEOUT
            done, _ = wait([future], timeout=min(CANCEL_POLL_INTERVAL, remaining), return_when=FIRST_COMPLETED)
            if done:
                return None
            if cancel.is_set():
                future.cancel()
                return ErrorKind.CANCELLED

    # ---- Status ----

    def get_all_engine_status(self) -> list[EngineStatus]:
        """One status per registered engine, in registration order. Never raises."""
        deadline = time.monotonic() + self._status_timeout
        pending = []
        for engine_id, engine in self._engines.items():
            try:
                pending.append((engine_id, self._executor.submit(engine.get_status)))
            except RuntimeError as e:
                pending.append((engine_id, e))
        return [self._collect_status(engine_id, item, deadline) for engine_id, item in pending]

    def _collect_status(self, engine_id: EngineId, item, deadline: float) -> EngineStatus:
        if isinstance(item, Exception):
            return EngineStatus.unavailable(engine_id, f"Status check failed: {item}")
        try:
            status = item.result(timeout=max(0.0, deadline - time.monotonic()))
        except FutureTimeoutError:
            item.cancel()
            logger.warning(f"Status check for {engine_id} timed out")
            return EngineStatus.unavailable(
                engine_id, f"Status check timed out after {self._status_timeout:g}s"
            )
        except Exception as e:
            logger.error(f"Failed to get status for engine {engine_id}: {e}")
            return EngineStatus.unavailable(engine_id, f"Status check failed: {_reason(e)}")

        if not isinstance(status, EngineStatus):
            return EngineStatus.unavailable(
                engine_id, f"Status check failed: got {type(status).__name__}"
            )
        return status

    def get_status(self) -> Optional[EngineStatus]:
        """Status of the current engine, or None when no engine is selected."""
        snapshot = self._state.snapshot
        if snapshot.engine is None:
            return None
        return self._collect_status(
            snapshot.engine_id,
            self._executor.submit(snapshot.engine.get_status),
            time.monotonic() + self._status_timeout,
        )

    def get_best_available_engine(self) -> Optional[EngineId]:
        """First available engine in priority order, without changing state."""
        available = {s.engine_id for s in self.get_all_engine_status() if s.is_available}
        for engine_id in self._priority:
            if engine_id in available:
                return engine_id
        return None

    # ---- Continuous listening ----

    def start_listening(self) -> None:
        engine = self._state.snapshot.engine
        if engine is None:
            raise NotInitializedError("No speech recognition engine is initialized")
        engine.start_listening()

    def feed_audio(
        self,
        chunk: bytes,
        language: Optional[str] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> Optional[TranscriptionResult]:
        """Push a chunk of 16-bit PCM to the listening engine.

        Returns None while the engine is still filling a segment. Once a
        segment is recognized the result is returned and also delivered to
        listeners as ``speech_recognized`` (or ``transcription_failed``).
        Raises ``NotInitializedError`` without a current engine and
        ``STTError`` when it is not listening.
        """
        snapshot = self._state.snapshot
        engine = snapshot.engine
        if engine is None:
            raise NotInitializedError("No speech recognition engine is initialized")
        if not engine.is_listening:
            raise STTError(f"{snapshot.engine_id} is not listening; call start_listening() first")
        if not chunk:
            raise ValueError("audio chunk is empty")

        cancel = cancel_event if cancel_event is not None else threading.Event()
        result = self._run_transcription(
            snapshot.engine_id,
            partial(engine.feed_audio, bytes(chunk), language, cancel),
            language,
            cancel,
            streamed=True,
        )
        if result is not None:
            self._report(snapshot.engine_id, result, streamed=True)
        return result

    def stop_listening(self, language: Optional[str] = None) -> Optional[TranscriptionResult]:
        """Stop listening, recognizing any audio still buffered first."""
        snapshot = self._state.snapshot
        engine = snapshot.engine
        if engine is None:
            return None
        result = None
        if engine.is_listening:
            cancel = threading.Event()
            result = self._run_transcription(
                snapshot.engine_id,
                partial(engine.flush_audio, language, cancel),
                language,
                cancel,
                streamed=True,
            )
        engine.stop_listening()
        if result is not None:
            self._report(snapshot.engine_id, result, streamed=True)
        return result

    @staticmethod
    def _stop_listening_quietly(engine: Optional[STTEngine]) -> None:
        if engine is None or not engine.is_listening:
            return
        try:
            engine.stop_listening()
        except Exception as e:
            logger.warning(f"Error stopping {engine.engine_id}: {e}")

    # ---- Lifecycle ----

    def shutdown(self) -> None:
        """Stop listening, release every adapter and the worker pool."""
        with self._setup_lock:
            self._stop_listening_quietly(self._state.snapshot.engine)
            self._state.reset()
            for engine_id, engine in self._engines.items():
                try:
                    engine.cleanup()
                except Exception as e:
                    logger.warning(f"Cleanup of {engine_id} failed: {e}")
            self._executor.shutdown(wait=False, cancel_futures=True)
        logger.info("Engine selector shut down")

    def __enter__(self) -> "EngineSelector":
        return self

    def __exit__(self, *exc) -> None:
        self.shutdown()


def _reason(error: Exception) -> str:
    if isinstance(error, EngineUnavailableError):
        return error.reason
    return str(error) or type(error).__name__
