"""ElevenLabs cloud text-to-speech adapter."""

import asyncio
import logging
from pathlib import Path
from typing import Optional

import httpx

from reddivox.adapters.tts_adapter import DEFAULT_SILENCE_MS, TTSAdapter
from reddivox.core.audio_probe import AudioDurationProbe
from reddivox.core.exceptions import (
    InternalSynthesisError,
    MissingCredentialError,
    RemoteSynthesisError,
)
from reddivox.core.silence import write_silent_mp3
from reddivox.core.types import TtsProvider, VoiceSelection, VoiceSettings

logger = logging.getLogger("reddivox")

BASE_URL = "https://api.elevenlabs.io/v1"
DEFAULT_MODEL_ID = "eleven_multilingual_v2"


class ElevenLabsAdapter(TTSAdapter):
    """Synthesizes MP3 files through the ElevenLabs REST API.

    The response body is streamed straight to disk. A blank text never
    reaches the API: the base class returns None for it.
    """

    provider = TtsProvider.ELEVENLABS
    file_extension = ".mp3"
    can_synthesize_silence = False

    def __init__(
        self,
        api_key: str,
        base_url: str = BASE_URL,
        model_id: str = DEFAULT_MODEL_ID,
        voice_settings: Optional[VoiceSettings] = None,
        timeout: float = 60.0,
        silence_ms: int = DEFAULT_SILENCE_MS,
        probe: Optional[AudioDurationProbe] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(silence_ms=silence_ms, probe=probe)
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._model_id = model_id
        self._voice_settings = voice_settings or VoiceSettings()
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = client is None

    def _check_ready(self) -> None:
        if not self._api_key or not self._api_key.strip():
            logger.error("ElevenLabs API key is not configured")
            raise MissingCredentialError("ElevenLabs API key is not configured (tts.elevenlabs.api_key)")

    async def _render(self, text: str, voice: VoiceSelection, output_path: Path) -> None:
        url = f"{self._base_url}/text-to-speech/{voice.voice_id}"
        headers = {
            "Accept": "audio/mpeg",
            "Content-Type": "application/json",
            "xi-api-key": self._api_key,
        }
        payload = {
            "text": text,
            "model_id": self._model_id,
            "voice_settings": self._voice_settings.to_payload(),
        }

        logger.debug(f"Sending ElevenLabs request for voice {voice.voice_id} ({len(text)} chars)")
        try:
            async with self._client.stream("POST", url, json=payload, headers=headers) as response:
                if not response.is_success:
                    body = (await response.aread()).decode("utf-8", errors="replace")
                    logger.error(f"ElevenLabs API error: {response.status_code} - {body}")
                    raise RemoteSynthesisError(response.status_code, body)

                # File IO runs off the event loop
                f = await asyncio.to_thread(open, output_path, "wb")
                try:
                    async for chunk in response.aiter_bytes():
                        await asyncio.to_thread(f.write, chunk)
                finally:
                    await asyncio.to_thread(f.close)
        except httpx.HTTPError as e:
            raise InternalSynthesisError(f"ElevenLabs request failed: {e}") from e

    def _write_silence(self, output_path: Path, seconds: float) -> None:
        write_silent_mp3(output_path, seconds)

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()
