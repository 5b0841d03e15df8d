"""
Telegram delivery for pipeline results.

A single video is sent as a reply. Segmented videos are sent as media groups
(albums of at most 10 videos) in group chats, and as consecutive replies in
private chats.
"""

import asyncio
import logging
from typing import List, Optional

from telegram import InputMediaVideo, Message
from telegram.constants import ChatType

from douyin_pipeline.processor import DeliveryItem, PipelineOutcome

logger = logging.getLogger(__name__)

# Telegram limit for send_media_group
MEDIA_GROUP_LIMIT = 10

SEQUENTIAL_DELAY = 0.5

UPLOAD_TIMEOUTS = dict(read_timeout=120, write_timeout=120, connect_timeout=30)


def build_caption(outcome: PipelineOutcome, bot_username: str, label: Optional[str] = None) -> str:
    lines = []
    if outcome.title:
        lines.append(f"Title: {outcome.title}")
    if label:
        lines.append(label)
    if outcome.from_cache:
        lines.append(f"Downloaded by {bot_username} (cached)")
    elif outcome.provider_name:
        lines.append(f"Downloaded by {bot_username}\nDouyin #{outcome.provider_num}")
    else:
        lines.append(f"Downloaded by {bot_username}")
    return "\n".join(lines)


def batch_items(items: List[DeliveryItem], size: int = MEDIA_GROUP_LIMIT) -> List[List[DeliveryItem]]:
    return [items[i:i + size] for i in range(0, len(items), size)]


class TelegramDelivery:
    """Sends pipeline outcomes to a Telegram chat."""

    def __init__(self, bot_username: str):
        self.bot_username = bot_username

    async def deliver(self, message: Message, outcome: PipelineOutcome) -> None:
        """
        Send the videos of an outcome as replies to a message.

        Args:
            message: Message that contained the share link
            outcome: Successful pipeline outcome
        """
        items = outcome.items
        if not items:
            raise ValueError("Nothing to deliver")

        if len(items) == 1:
            logger.info(f"[DELIVERY] Sending {items[0].path.name}")
            await message.reply_video(
                video=items[0].path,
                caption=build_caption(outcome, self.bot_username),
                supports_streaming=True,
                **UPLOAD_TIMEOUTS,
            )
            return

        if message.chat.type in (ChatType.GROUP, ChatType.SUPERGROUP):
            await self._send_grouped(message, outcome)
        else:
            await self._send_sequential(message, outcome)

    async def _send_grouped(self, message: Message, outcome: PipelineOutcome) -> None:
        batches = batch_items(outcome.items)
        for n, batch in enumerate(batches, 1):
            logger.info(f"[DELIVERY] Sending media group {n}/{len(batches)} ({len(batch)} video(s))")
            media = [
                InputMediaVideo(
                    media=item.path,
                    caption=build_caption(outcome, self.bot_username, item.label) if i == 0 else item.label,
                    supports_streaming=True,
                )
                for i, item in enumerate(batch)
            ]
            await message.reply_media_group(media=media, **UPLOAD_TIMEOUTS)

    async def _send_sequential(self, message: Message, outcome: PipelineOutcome) -> None:
        total = len(outcome.items)
        for i, item in enumerate(outcome.items, 1):
            logger.info(f"[DELIVERY] Sending {item.label or item.path.name} ({i}/{total})")
            await message.reply_video(
                video=item.path,
                caption=build_caption(outcome, self.bot_username, item.label),
                supports_streaming=True,
                **UPLOAD_TIMEOUTS,
            )
            if i < total:
                await asyncio.sleep(SEQUENTIAL_DELAY)


__all__ = ['MEDIA_GROUP_LIMIT', 'TelegramDelivery', 'batch_items', 'build_caption']
