"""ReddiVox cold-start entry point."""

import asyncio
import logging
import sys

from reddivox.adapters.elevenlabs_adapter import ElevenLabsAdapter
from reddivox.adapters.local_tts_adapter import LocalTTSAdapter, SpeechWorker
from reddivox.adapters.reddit_oauth_adapter import RedditOAuthAdapter
from reddivox.core.audio_probe import AudioDurationProbe
from reddivox.core.config_manager import ConfigManager
from reddivox.core.exceptions import (
    AuthError,
    ConfigError,
    FetchError,
    ReddiVoxError,
    SynthesisError,
    describe_error,
)
from reddivox.core.logger import setup_logger
from reddivox.core.types import NarrationResult
from reddivox.services.content_source import ContentSource
from reddivox.services.narration_service import NarrationService


def build_narration_service(config: ConfigManager) -> NarrationService:
    """Create both narration providers from configuration."""
    probe = AudioDurationProbe()
    silence_ms = config.get("tts.silence_ms", 200)

    local = LocalTTSAdapter(
        voice_id=config.get("tts.local.voice_id", "") or "",
        rate=config.get("tts.local.rate", 180),
        volume=config.get("tts.local.volume", 1.0),
        silence_ms=silence_ms,
        probe=probe,
    )
    elevenlabs = ElevenLabsAdapter(
        api_key=config.get("tts.elevenlabs.api_key", "") or "",
        base_url=config.get("tts.elevenlabs.base_url", "https://api.elevenlabs.io/v1"),
        model_id=config.get("tts.elevenlabs.model_id", "eleven_multilingual_v2"),
        voice_settings=config.get_voice_settings(),
        timeout=config.get("tts.elevenlabs.timeout", 60),
        silence_ms=silence_ms,
        probe=probe,
    )
    return NarrationService(
        [local, elevenlabs],
        max_concurrency=config.get("tts.max_concurrency", 3),
    )


async def run(config: ConfigManager) -> list[NarrationResult]:
    """Authenticate, fetch fresh top posts and narrate each one.

    Startup sequence:
    1. Adapter creation (RedditOAuthAdapter, local + ElevenLabs synthesizers)
    2. Service creation (ContentSource, NarrationService)
    3. Authenticate (AuthError is fatal for the session)
    4. Fetch top posts of the default subreddit
    5. For each post: fetch comments, narrate, mark consumed

    A post whose comments or audio fail is logged and left unconsumed.
    Configuration errors and a failed listing fetch end the session.
    """
    logger = logging.getLogger("reddivox")

    voice = config.get_default_voice()
    output_dir = config.get_output_dir()
    results = []

    reddit_adapter = RedditOAuthAdapter(
        user_agent=config.get("reddit.user_agent", ""),
        request_interval_sec=config.get("reddit.request_interval_sec", 1),
        timeout=config.get("reddit.timeout", 30),
    )
    narration = build_narration_service(config)

    async with ContentSource(reddit_adapter) as source:
        try:
            await source.authenticate(config.get_reddit_credentials())
        except AuthError as e:
            logger.critical(f"Reddit authentication failed, aborting session: {describe_error(e)}")
            await narration.close()
            raise

        try:
            subreddit = config.get("reddit.default_subreddit", "AskReddit")
            posts = await source.fetch_top_posts(
                subreddit,
                time_filter=config.get("reddit.time_filter", "day"),
                limit=config.get("reddit.post_limit", 1),
            )
            if not posts:
                logger.warning(f"No fresh posts in r/{subreddit}")

            for post in posts:
                try:
                    comments = await source.fetch_comments(
                        post.id,
                        limit=config.get("reddit.comment_limit", 20),
                        max_depth=config.get("reddit.comment_depth", 1),
                    )
                    result = await narration.narrate_post(post, comments, voice, output_dir)
                except ConfigError:
                    raise
                except (FetchError, SynthesisError) as e:
                    logger.error(f"Skipping post {post.id}: {describe_error(e)}")
                    continue
                source.mark_consumed(post.id)
                results.append(result)
                logger.info(f"Post {post.id} '{post.title[:40]}': {len(result.segments)} segments, "
                            f"{result.total_duration_sec:.2f}s")
        finally:
            await narration.close()

    return results


def main() -> int:
    """Main entry point for ReddiVox.

    Returns:
        Process exit code (0 on success, 1 on any fatal ReddiVox error)
    """
    # ConfigManager (loads or creates settings.yaml)
    config = ConfigManager()

    # Logger (reads log_level from config)
    log_level = config.get("app.log_level", "INFO")
    mask_logs = config.get("security.mask_logs", True)
    logger = setup_logger(log_level=log_level, mask_logs=mask_logs)
    logger.info("ReddiVox starting...")

    try:
        results = asyncio.run(run(config))
    except (AuthError, ConfigError) as e:
        logger.critical(describe_error(e))
        return 1
    except ReddiVoxError as e:
        logger.error(f"ReddiVox session failed: {describe_error(e)}")
        return 1
    finally:
        SpeechWorker.reset()

    total = sum(r.total_duration_sec for r in results)
    logger.info(f"ReddiVox finished: {len(results)} posts narrated, {total:.2f}s of audio")
    return 0


if __name__ == "__main__":
    sys.exit(main())
