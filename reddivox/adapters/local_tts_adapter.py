"""Local speech engine adapter (pyttsx3) with a dedicated engine thread."""

import asyncio
import logging
import sys
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Callable, Optional, TypeVar

import pyttsx3

from reddivox.adapters.tts_adapter import DEFAULT_SILENCE_MS, TTSAdapter
from reddivox.core.audio_probe import AudioDurationProbe
from reddivox.core.silence import write_silent_wav
from reddivox.core.types import TtsProvider, VoiceSelection

logger = logging.getLogger("reddivox")

T = TypeVar("T")


class SpeechWorker:
    """Owns the local speech engine on one long-lived thread.

    The engine is not thread-safe and must be created and driven from the
    same thread, so every engine call is marshalled onto a single-worker
    executor. Concurrent callers queue up and run one at a time.
    """

    _instance: Optional["SpeechWorker"] = None
    _lock = threading.Lock()

    def __init__(self, engine_factory: Optional[Callable[[], Any]] = None):
        self._engine_factory = engine_factory or pyttsx3.init
        self._executor = ThreadPoolExecutor(
            max_workers=1,
            thread_name_prefix="reddivox-tts",
            initializer=self._init_thread,
        )
        self._engine = None  # only touched on the worker thread

    @classmethod
    def shared(cls) -> "SpeechWorker":
        """Process-wide worker, created on first use."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Shut down and forget the shared worker (for testing)."""
        with cls._lock:
            if cls._instance is not None:
                cls._instance.shutdown()
            cls._instance = None

    async def run(self, job: Callable[[Any], T]) -> T:
        """Run `job(engine)` on the engine thread and await its result."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, self._call, job)

    def shutdown(self) -> None:
        self._executor.shutdown(wait=True)

    @staticmethod
    def _init_thread() -> None:
        if sys.platform == "win32":
            # SAPI5 is a COM server and needs COM on the calling thread
            import comtypes
            comtypes.CoInitialize()

    def _call(self, job: Callable[[Any], T]) -> T:
        if self._engine is None:
            logger.info(f"Initializing local speech engine on {threading.current_thread().name}")
            self._engine = self._engine_factory()
        return job(self._engine)


class LocalTTSAdapter(TTSAdapter):
    """Synthesizes WAV files with the operating system's speech engine."""

    provider = TtsProvider.LOCAL
    file_extension = ".wav"
    can_synthesize_silence = True

    def __init__(
        self,
        voice_id: str = "",
        rate: int = 180,
        volume: float = 1.0,
        silence_ms: int = DEFAULT_SILENCE_MS,
        probe: Optional[AudioDurationProbe] = None,
        worker: Optional[SpeechWorker] = None,
    ):
        super().__init__(silence_ms=silence_ms, probe=probe)
        self._default_voice_id = voice_id
        self._rate = rate
        self._volume = volume
        self._worker = worker

    @property
    def worker(self) -> SpeechWorker:
        if self._worker is None:
            self._worker = SpeechWorker.shared()
        return self._worker

    async def list_voices(self) -> list[dict]:
        """Installed voices as [{"id": ..., "name": ...}]."""
        def collect(engine) -> list[dict]:
            return [{"id": v.id, "name": v.name} for v in engine.getProperty("voices")]
        return await self.worker.run(collect)

    async def _render(self, text: str, voice: VoiceSelection, output_path: Path) -> None:
        voice_id = voice.voice_id or self._default_voice_id

        def speak(engine) -> None:
            if voice_id:
                engine.setProperty("voice", voice_id)
            engine.setProperty("rate", self._rate)
            engine.setProperty("volume", self._volume)
            engine.save_to_file(text, str(output_path))
            engine.runAndWait()

        logger.debug(f"Local engine rendering {len(text)} chars to {output_path}")
        job = asyncio.ensure_future(self.worker.run(speak))
        try:
            await asyncio.shield(job)
        except asyncio.CancelledError:
            # The engine thread cannot be interrupted. Let it finish writing
            # before the partial file is removed
            await asyncio.wait({job})
            output_path.unlink(missing_ok=True)
            raise

    def _write_silence(self, output_path: Path, seconds: float) -> None:
        write_silent_wav(output_path, seconds)
