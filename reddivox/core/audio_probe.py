"""Audio duration probing from container metadata (no full decode)."""

import logging
import wave
from pathlib import Path

from mutagen import File as MutagenFile
from mutagen.mp3 import MP3

logger = logging.getLogger("reddivox")

_MP3_SUFFIXES = (".mp3", ".mp2", ".mpga")


class AudioDurationProbe:
    """Reports the playable duration of WAV and compressed audio files.

    The format is picked from the file's magic bytes, not its suffix.
    WAV durations come from the RIFF header (frames / sample rate).
    MP3, AIFF and other formats are read through mutagen, which walks
    frame headers and Xing/VBRI tags rather than decoding audio.

    A missing or unreadable file yields 0.0, which callers treat as
    "unknown", never as a hard failure.
    """

    def probe(self, file_path: Path | str) -> float:
        """Return duration in seconds, or 0.0 when unknown."""
        path = Path(file_path)
        if not str(file_path) or not path.is_file():
            logger.warning(f"Duration probe: file not found '{path}'")
            return 0.0

        try:
            with open(path, "rb") as f:
                head = f.read(12)
            if not head:
                logger.warning(f"Duration probe: empty file '{path}'")
                return 0.0

            # Content decides the format. Some engines write AIFF into a .wav name
            if self._is_wav(head):
                return self._wav_duration(path)
            if self._looks_like_mp3(head):
                return float(MP3(str(path)).info.length)

            audio = MutagenFile(str(path))
            if audio is not None and audio.info is not None:
                return float(audio.info.length)
            if path.suffix.lower() in _MP3_SUFFIXES:
                return float(MP3(str(path)).info.length)

            logger.warning(f"Duration probe: unrecognized audio format '{path}'")
            return 0.0
        except Exception as e:
            logger.error(f"Error reading audio duration for '{path}': {e}")
            return 0.0

    @staticmethod
    def _is_wav(head: bytes) -> bool:
        return head[:4] == b"RIFF" and head[8:12] == b"WAVE"

    @staticmethod
    def _looks_like_mp3(head: bytes) -> bool:
        if head[:3] == b"ID3":
            return True
        # 11-bit frame sync
        return len(head) >= 2 and head[0] == 0xFF and (head[1] & 0xE0) == 0xE0

    @staticmethod
    def _wav_duration(path: Path) -> float:
        with wave.open(str(path), "rb") as wav:
            rate = wav.getframerate()
            if rate <= 0:
                return 0.0
            return wav.getnframes() / float(rate)
