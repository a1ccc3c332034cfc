"""Silent placeholder clips for empty or unusable synthesis output."""

import wave
from pathlib import Path

from pydub import AudioSegment as PydubSegment

# 16-bit mono PCM
WAV_SAMPLE_RATE = 22050
WAV_SAMPLE_WIDTH = 2

MP3_BITRATE = "128k"


def write_silent_wav(path: Path, seconds: float,
                     sample_rate: int = WAV_SAMPLE_RATE) -> float:
    """Write a silent WAV file.

    Returns:
        Duration actually written, in seconds
    """
    num_frames = max(0, round(seconds * sample_rate))
    with wave.open(str(path), "wb") as wav:
        wav.setnchannels(1)
        wav.setsampwidth(WAV_SAMPLE_WIDTH)
        wav.setframerate(sample_rate)
        wav.writeframes(bytes(num_frames * WAV_SAMPLE_WIDTH))
    return num_frames / sample_rate


def write_silent_mp3(path: Path, seconds: float) -> float:
    """Write a silent MP3 file (pydub, encoded by ffmpeg).

    Returns:
        Duration of the silent clip, in seconds
    """
    silence = PydubSegment.silent(duration=max(0, round(seconds * 1000)))
    silence.export(str(path), format="mp3", bitrate=MP3_BITRATE)
    return len(silence) / 1000.0
