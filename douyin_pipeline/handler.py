"""
DouyinDownloadHandler - Sends Douyin videos shared in chat.

This handler detects Douyin share links in messages, resolves and downloads
the video, and replies with it.
"""

import logging
import random
from typing import Optional

import aiohttp
from telegram.constants import ChatAction

from douyin_pipeline.config import Settings
from douyin_pipeline.delivery import TelegramDelivery
from douyin_pipeline.links import LINK_PATTERN
from douyin_pipeline.processor import STATUS_NOT_APPLICABLE, STATUS_PROVIDERS_FAILED, DouyinPipeline
from pipeline import PipelineContext, PipelineHandler

logger = logging.getLogger(__name__)

# Cat emojis for error messages
CAT_EMOJIS = ["😺", "😸", "😹", "😻", "😼", "😽", "🙀", "😿", "😾", "🐱"]


def get_random_cat_emoji() -> str:
    """Return a random cat emoji for error messages."""
    return random.choice(CAT_EMOJIS)


class DouyinDownloadHandler(PipelineHandler):
    """
    Handler that downloads Douyin videos.

    Uses DouyinPipeline to resolve the link and TelegramDelivery to send the
    result. Any failure ends with exactly one error reply.
    """

    DEFAULT_PRIORITY = 100

    def __init__(self, settings: Optional[Settings] = None,
                 douyin_pipeline: Optional[DouyinPipeline] = None,
                 delivery: Optional[TelegramDelivery] = None):
        """
        Initialize the DouyinDownloadHandler.

        Args:
            settings: Pipeline settings (read from env if omitted)
            douyin_pipeline: Pipeline to run (built from settings if omitted)
            delivery: Telegram sender (built from settings if omitted)
        """
        super().__init__("DouyinDownloadHandler")
        self.settings = settings or Settings.from_env()
        self.douyin_pipeline = douyin_pipeline or DouyinPipeline.from_settings(self.settings)
        self.delivery = delivery or TelegramDelivery(self.settings.bot_username)
        self.bot_username = self.settings.bot_username

    async def _reply_error(self, ctx: PipelineContext, text: str) -> None:
        try:
            await ctx.message.reply_text(f"{text} {get_random_cat_emoji()}\n\n{self.bot_username}")
        except Exception as e:
            logger.error(f"[DOUYIN] Could not send error message: {type(e).__name__}: {e}")

    async def process(self, ctx: PipelineContext) -> None:
        """Process the message and send the video if a share link is found."""
        message = ctx.message
        text = ctx.message_text

        if not message or not text:
            return

        logger.info(f"[DOUYIN] START msg={message.message_id} chat={ctx.chat_label} user='{ctx.user_label}'")

        if not LINK_PATTERN.search(text):
            logger.info(f"[DOUYIN] No share link found in message")
            ctx.data['douyin_link_found'] = False
            return

        outcome = None
        try:
            await ctx.context.bot.send_chat_action(
                chat_id=message.chat_id,
                action=ChatAction.UPLOAD_VIDEO
            )

            async with aiohttp.ClientSession() as session:
                outcome = await self.douyin_pipeline.run(session, text)

            if outcome.status == STATUS_NOT_APPLICABLE:
                return

            ctx.data['douyin_link_found'] = True

            if outcome.status == STATUS_PROVIDERS_FAILED:
                logger.warning(f"[DOUYIN] Link matched but all providers failed")
                await self._reply_error(
                    ctx,
                    "😿 Meow! I couldn't parse this video. All my providers failed or returned errors!"
                )
                ctx.data['douyin_error'] = 'providers_failed'
                ctx.stop()
                return

            await self.delivery.deliver(message, outcome)

            ctx.data['douyin_sent'] = True
            ctx.data['douyin_from_cache'] = outcome.from_cache
            ctx.data['douyin_parts'] = len(outcome.items)
            mode = "segmented" if outcome.is_segmented else "single"
            logger.info(f"[DOUYIN] ✓ Sent {len(outcome.items)} video(s) ({mode}), provider: {outcome.provider_name or 'cache'}")
            ctx.stop()

        except Exception as e:
            logger.error(f"[DOUYIN] Error processing message: {type(e).__name__}: {e}", exc_info=True)
            await self._reply_error(ctx, "😿 Oops! Something went wrong while sending this video.")
            ctx.data['douyin_error'] = str(e)
            ctx.stop()

        finally:
            if outcome is not None and outcome.ok:
                try:
                    self.douyin_pipeline.finish(outcome)
                except Exception as e:
                    logger.warning(f"[DOUYIN] Cleanup failed: {type(e).__name__}: {e}")

        logger.info(f"[DOUYIN] ========== DOUYIN HANDLER END ==========")


__all__ = ['DouyinDownloadHandler', 'get_random_cat_emoji']
