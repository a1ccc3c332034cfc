"""Tests for NarrationService."""

import asyncio
from unittest.mock import MagicMock

import pytest

from reddivox.adapters.tts_adapter import TTSAdapter
from reddivox.core.exceptions import RemoteSynthesisError, UnsupportedProviderError
from reddivox.core.silence import write_silent_wav
from reddivox.core.types import Comment, Post, TtsProvider, VoiceSelection
from reddivox.services.narration_service import NarrationService, spoken_text

LOCAL = VoiceSelection(TtsProvider.LOCAL)
CLOUD = VoiceSelection(TtsProvider.ELEVENLABS, "voice-abc")


class FakeLocal(TTSAdapter):
    """Writes half a second of WAV per clip and tracks concurrency."""

    provider = TtsProvider.LOCAL
    file_extension = ".wav"

    def __init__(self, delay=0.0, **kwargs):
        super().__init__(**kwargs)
        self.delay = delay
        self.texts = []
        self.active = 0
        self.peak = 0

    async def _render(self, text, voice, output_path):
        self.active += 1
        self.peak = max(self.peak, self.active)
        try:
            # Later texts finish first to prove ordering is kept
            await asyncio.sleep(self.delay / (len(self.texts) + 1))
            self.texts.append(text)
            write_silent_wav(output_path, 0.5)
        finally:
            self.active -= 1

    def _write_silence(self, output_path, seconds):
        write_silent_wav(output_path, seconds)


class FakeCloud(TTSAdapter):
    provider = TtsProvider.ELEVENLABS
    file_extension = ".mp3"
    can_synthesize_silence = False

    def __init__(self, fail_on=None, **kwargs):
        if "probe" not in kwargs:
            kwargs["probe"] = MagicMock()
            kwargs["probe"].probe.return_value = 1.0
        super().__init__(**kwargs)
        self.fail_on = fail_on
        self.closed = False

    async def _render(self, text, voice, output_path):
        if text == self.fail_on:
            raise RemoteSynthesisError(500, "boom")
        output_path.write_bytes(b"mp3 audio")

    def _write_silence(self, output_path, seconds):
        output_path.write_bytes(b"mp3 silence")

    async def close(self):
        self.closed = True


def sample_post(selftext="Body text"):
    return Post(id="abc", title="What is your story?", subreddit="AskReddit", selftext=selftext)


def sample_comments():
    return [
        Comment(id="c1", body="First", replies=(Comment(id="c1a", body="Reply"),)),
        Comment(id="c2", body="Second"),
    ]


class TestSpokenText:

    def test_strips_markup(self):
        text = "<p>Read [this](https://example.com) &amp; that</p>\n\n https://x.y/z  now"
        assert spoken_text(text) == "Read this & that now"

    def test_empty(self):
        assert spoken_text("") == ""


class TestDispatch:

    @pytest.mark.asyncio
    async def test_routes_by_provider(self, tmp_dir):
        local, cloud = FakeLocal(), FakeCloud()
        service = NarrationService([local, cloud])

        seg_local = await service.synthesize("Hi", LOCAL, tmp_dir / "a.wav")
        seg_cloud = await service.synthesize("Hi", CLOUD, tmp_dir / "b.mp3")

        assert local.texts == ["Hi"]
        assert seg_local.path.suffix == ".wav"
        assert seg_cloud.path.suffix == ".mp3"

    @pytest.mark.asyncio
    async def test_unregistered_provider(self, tmp_dir):
        service = NarrationService([FakeLocal()])
        with pytest.raises(UnsupportedProviderError):
            await service.synthesize("Hi", CLOUD, tmp_dir / "a.mp3")

    def test_providers_listed(self):
        service = NarrationService([FakeLocal(), FakeCloud()])
        assert service.providers == [TtsProvider.LOCAL, TtsProvider.ELEVENLABS]


class TestNarratePost:

    def test_collect_texts_order(self):
        items = NarrationService.collect_texts(sample_post(), sample_comments())
        assert items == [
            ("abc", "title", "What is your story?"),
            ("abc", "body", "Body text"),
            ("c1", "comment", "First"),
            ("c1a", "comment", "Reply"),
            ("c2", "comment", "Second"),
        ]

    def test_collect_texts_skips_blank_body(self):
        items = NarrationService.collect_texts(sample_post(selftext="  "), [])
        assert [kind for _, kind, _ in items] == ["title"]

    @pytest.mark.asyncio
    async def test_segments_in_text_order(self, tmp_dir):
        local = FakeLocal(delay=0.05)
        service = NarrationService([local], max_concurrency=5)

        result = await service.narrate_post(sample_post(), sample_comments(), LOCAL, tmp_dir)

        assert [s.source_id for s in result.segments] == ["abc", "abc", "c1", "c1a", "c2"]
        assert [s.kind for s in result.segments] == ["title", "body", "comment", "comment", "comment"]
        assert result.segments[0].audio.path == tmp_dir / "abc_000_title.wav"
        assert result.segments[4].audio.path == tmp_dir / "abc_004_comment.wav"
        assert result.total_duration_sec == pytest.approx(2.5, abs=0.05)

    @pytest.mark.asyncio
    async def test_concurrency_is_bounded(self, tmp_dir):
        local = FakeLocal(delay=0.05)
        service = NarrationService([local], max_concurrency=2)

        await service.narrate_post(sample_post(), sample_comments(), LOCAL, tmp_dir)

        assert local.peak <= 2

    @pytest.mark.asyncio
    async def test_blank_comment_local_gets_silence(self, tmp_dir):
        service = NarrationService([FakeLocal()])
        comments = [Comment(id="c1", body="")]

        result = await service.narrate_post(sample_post(), comments, LOCAL, tmp_dir)

        assert result.segments[-1].audio.duration_sec == pytest.approx(0.2)

    @pytest.mark.asyncio
    async def test_blank_comment_cloud_is_skipped(self, tmp_dir):
        service = NarrationService([FakeCloud()])
        comments = [Comment(id="c1", body=""), Comment(id="c2", body="Kept")]

        result = await service.narrate_post(sample_post(selftext=""), comments, CLOUD, tmp_dir)

        assert [s.source_id for s in result.segments] == ["abc", "c2"]
        assert result.segments[1].audio.path == tmp_dir / "abc_002_comment.mp3"

    @pytest.mark.asyncio
    async def test_failure_propagates(self, tmp_dir):
        service = NarrationService([FakeCloud(fail_on="Second")])

        with pytest.raises(RemoteSynthesisError):
            await service.narrate_post(sample_post(), sample_comments(), CLOUD, tmp_dir)

    @pytest.mark.asyncio
    async def test_close_closes_providers(self):
        cloud = FakeCloud()
        service = NarrationService([cloud])
        await service.close()
        assert cloud.closed is True
