"""Narration service: provider dispatch and per-post narration."""

import asyncio
import html
import logging
import re
from pathlib import Path
from typing import Iterable, Optional, Union

from reddivox.adapters.tts_adapter import TTSAdapter
from reddivox.core.exceptions import UnsupportedProviderError
from reddivox.core.types import (
    AudioSegment,
    Comment,
    NarratedSegment,
    NarrationResult,
    Post,
    TtsProvider,
    VoiceSelection,
)

logger = logging.getLogger("reddivox")

_HTML_TAG = re.compile(r"<[^>]+>")
_MARKDOWN_LINK = re.compile(r"\[([^\]]*)\]\([^)]*\)")
_BARE_URL = re.compile(r"https?://\S+")
_WHITESPACE = re.compile(r"\s+")


def spoken_text(text: str) -> str:
    """Reduce markdown/HTML to plain text a speech engine can read aloud.

    Tags are dropped, entities unescaped, link targets and bare URLs
    removed (link labels are kept), whitespace collapsed.
    """
    text = html.unescape(_HTML_TAG.sub(" ", text or ""))
    text = _MARKDOWN_LINK.sub(r"\1", text)
    text = _BARE_URL.sub("", text)
    return _WHITESPACE.sub(" ", text).strip()


class NarrationService:
    """Routes synthesis requests to the provider named by the voice selection.

    Responsibilities:
    - Provider dispatch keyed by TtsProvider
    - Turning a post and its comment tree into ordered audio segments
    - Bounding concurrent synthesis with a semaphore
    """

    def __init__(self, providers: Iterable[TTSAdapter], max_concurrency: int = 3):
        self._providers: dict[TtsProvider, TTSAdapter] = {}
        for provider in providers:
            self._providers[provider.provider] = provider
        self._max_concurrency = max(1, max_concurrency)

    @property
    def providers(self) -> list[TtsProvider]:
        return list(self._providers)

    def provider_for(self, voice: VoiceSelection) -> TTSAdapter:
        """Registered provider for `voice`.

        Raises:
            UnsupportedProviderError: No provider registered for voice.provider
        """
        provider = self._providers.get(voice.provider)
        if provider is None:
            raise UnsupportedProviderError(f"No synthesizer registered for '{voice.provider.value}'")
        return provider

    async def synthesize(self, text: str, voice: VoiceSelection,
                         output_path: Union[Path, str]) -> Optional[AudioSegment]:
        """Synthesize one clip with the provider named by `voice`."""
        return await self.provider_for(voice).synthesize(text, voice, output_path)

    @staticmethod
    def collect_texts(post: Post, comments: list[Comment]) -> list[tuple[str, str, str]]:
        """Ordered (source_id, kind, text) items for a post.

        Title first, then the body when present, then every comment in
        pre-order (each comment followed by its replies).
        """
        items = [(post.id, "title", spoken_text(post.title))]
        body = spoken_text(post.selftext)
        if body:
            items.append((post.id, "body", body))
        for comment in comments:
            for node in comment.walk():
                items.append((node.id, "comment", spoken_text(node.body)))
        return items

    async def narrate_post(self, post: Post, comments: list[Comment],
                           voice: VoiceSelection,
                           output_dir: Union[Path, str]) -> NarrationResult:
        """Narrate a post and its comments into `output_dir`.

        Files are named "<post_id>_<index>_<kind><ext>". Up to
        max_concurrency clips are synthesized at once; segments come back
        in text order. Texts for which the provider produced no segment
        (blank text on a cloud provider) are left out.

        Raises:
            UnsupportedProviderError: No provider registered for voice.provider
            SynthesisError: Any synthesis failure (remaining clips are cancelled)
        """
        provider = self.provider_for(voice)
        output_dir = Path(output_dir)
        items = self.collect_texts(post, comments)
        semaphore = asyncio.Semaphore(self._max_concurrency)

        async def narrate_one(index: int, source_id: str, kind: str,
                              text: str) -> Optional[NarratedSegment]:
            path = output_dir / f"{post.id}_{index:03d}_{kind}{provider.file_extension}"
            async with semaphore:
                audio = await provider.synthesize(text, voice, path)
            if audio is None:
                return None
            return NarratedSegment(source_id=source_id, kind=kind, text=text, audio=audio)

        tasks = [asyncio.ensure_future(narrate_one(i, *item)) for i, item in enumerate(items)]
        try:
            results = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        result = NarrationResult(post_id=post.id, segments=[r for r in results if r is not None])
        logger.info(f"Narrated post {post.id}: {len(result.segments)}/{len(items)} segments, "
                    f"{result.total_duration_sec:.2f}s total")
        return result

    async def close(self) -> None:
        for provider in self._providers.values():
            await provider.close()
