"""Abstract base class for narration (text-to-speech) providers."""

import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Union

from reddivox.core.audio_probe import AudioDurationProbe
from reddivox.core.exceptions import (
    InternalSynthesisError,
    MissingVoiceError,
    SynthesisError,
    UnsupportedProviderError,
)
from reddivox.core.types import AudioSegment, TtsProvider, VoiceSelection

logger = logging.getLogger("reddivox")

DEFAULT_SILENCE_MS = 200


def partial_path(output_path: Path) -> Path:
    """Sibling path used while a file is being written (clip.part.wav)."""
    return output_path.with_name(f"{output_path.stem}.part{output_path.suffix}")


class TTSAdapter(ABC):
    """Abstract interface for turning text into a timed audio file.

    synthesize() applies the shared policy once for every provider:
    provider tag check, empty text, voice id requirement, atomic write,
    duration probe and the zero-duration silent fallback.
    Subclasses only render audio and write silence in their format.
    """

    provider: TtsProvider
    file_extension: str = ".wav"
    # False when silence would need a remote call
    can_synthesize_silence: bool = True

    def __init__(self, silence_ms: int = DEFAULT_SILENCE_MS,
                 probe: Optional[AudioDurationProbe] = None):
        self._silence_sec = silence_ms / 1000.0
        self._probe = probe or AudioDurationProbe()

    @property
    def silence_sec(self) -> float:
        return self._silence_sec

    async def synthesize(self, text: str, voice: VoiceSelection,
                         output_path: Union[Path, str]) -> Optional[AudioSegment]:
        """Synthesize `text` into `output_path`.

        Args:
            text: Text to speak
            voice: Provider tag and optional voice id
            output_path: Destination audio file (parent dirs are created)

        Returns:
            AudioSegment, or None when the text is blank and this provider
            cannot produce silence locally

        Raises:
            UnsupportedProviderError: voice.provider is not this provider
            MissingVoiceError: Provider needs a voice id and none was given
            MissingCredentialError: Provider credentials not configured
            RemoteSynthesisError: Remote endpoint returned a non-success status
            InternalSynthesisError: Anything unexpected during synthesis
        """
        if voice.provider != self.provider:
            logger.warning(f"{type(self).__name__} called with provider '{voice.provider.value}'")
            raise UnsupportedProviderError(
                f"{self.provider.value} synthesizer cannot handle provider '{voice.provider.value}'"
            )

        output_path = Path(output_path)

        if not text or not text.strip():
            if not self.can_synthesize_silence:
                logger.warning(f"{self.provider.value}: text was empty, no segment produced")
                return None
            logger.warning("Text to speak was empty, writing silent clip")
            return self._silent_segment(output_path)

        if voice.requires_voice_id and not voice.voice_id:
            logger.error(f"{self.provider.value}: voice id was not provided")
            raise MissingVoiceError(f"{self.provider.value} requires a voice id")

        self._check_ready()

        partial = partial_path(output_path)
        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            await self._render(text, voice, partial)
            os.replace(partial, output_path)
        except SynthesisError:
            raise
        except Exception as e:
            logger.error(f"{self.provider.value} synthesis failed: {e}")
            raise InternalSynthesisError(f"{self.provider.value} synthesis failed: {e}") from e
        finally:
            # Also runs on cancellation
            partial.unlink(missing_ok=True)

        duration = self._probe.probe(output_path)
        if duration == 0.0:
            logger.warning(f"Generated audio for '{text[:20]}(...)' has zero duration. "
                           f"Creating a silent fallback.")
            return self._silent_segment(output_path)

        logger.info(f"Generated audio at {output_path} ({duration:.2f}s)")
        return AudioSegment(path=output_path, duration_sec=duration)

    def _check_ready(self) -> None:
        """Raise a SynthesisError subclass if the provider is not configured."""

    @abstractmethod
    async def _render(self, text: str, voice: VoiceSelection, output_path: Path) -> None:
        """Write synthesized audio for `text` to `output_path`."""
        ...

    @abstractmethod
    def _write_silence(self, output_path: Path, seconds: float) -> None:
        """Write a silent clip in this provider's audio format."""
        ...

    async def close(self) -> None:
        """Release provider resources. Default: no-op."""

    def _silent_segment(self, output_path: Path) -> AudioSegment:
        partial = partial_path(output_path)
        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            self._write_silence(partial, self._silence_sec)
            os.replace(partial, output_path)
        except OSError as e:
            raise InternalSynthesisError(f"Could not write silent clip: {e}") from e
        finally:
            partial.unlink(missing_ok=True)
        logger.info(f"Generated silent clip at {output_path} ({self._silence_sec:.2f}s)")
        return AudioSegment(path=output_path, duration_sec=self._silence_sec)
