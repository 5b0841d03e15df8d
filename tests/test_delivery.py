"""
Tests for Telegram delivery.
"""

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from telegram.constants import ChatType

from douyin_pipeline.delivery import TelegramDelivery, batch_items, build_caption
from douyin_pipeline.processor import STATUS_OK, DeliveryItem, PipelineOutcome


def _message(chat_type=ChatType.PRIVATE):
    message = MagicMock()
    message.chat.type = chat_type
    message.reply_video = AsyncMock()
    message.reply_media_group = AsyncMock()
    return message


def _outcome(count, title='T'):
    if count == 1:
        items = [DeliveryItem(path=Path('/cache/abc.mp4'))]
    else:
        items = [
            DeliveryItem(path=Path(f"/cache/abc_chunk_{i:03d}.mp4"), label=f"Part {i + 1}/{count}")
            for i in range(count)
        ]
    return PipelineOutcome(status=STATUS_OK, items=items, title=title, provider_name='AA1-API', provider_num=1)


def test_caption_contains_title_and_label():
    caption = build_caption(_outcome(1), '@bot', 'Part 1/2')
    assert caption.startswith('Title: T\nPart 1/2\n')
    assert '@bot' in caption


def test_cached_caption():
    outcome = PipelineOutcome(status=STATUS_OK, from_cache=True)
    assert build_caption(outcome, '@bot') == 'Downloaded by @bot (cached)'


def test_batches_respect_media_group_limit():
    items = _outcome(23).items
    batches = batch_items(items)
    assert [len(b) for b in batches] == [10, 10, 3]
    assert [i for b in batches for i in b] == items


@pytest.mark.asyncio
async def test_single_video_reply():
    message = _message()

    await TelegramDelivery('@bot').deliver(message, _outcome(1))

    message.reply_video.assert_awaited_once()
    kwargs = message.reply_video.await_args.kwargs
    assert kwargs['video'] == Path('/cache/abc.mp4')
    assert kwargs['caption'].startswith('Title: T')
    message.reply_media_group.assert_not_awaited()


@pytest.mark.asyncio
async def test_segments_in_group_chat_use_media_groups():
    message = _message(ChatType.SUPERGROUP)

    with patch('douyin_pipeline.delivery.InputMediaVideo') as media_cls:
        await TelegramDelivery('@bot').deliver(message, _outcome(12))

    assert message.reply_media_group.await_count == 2
    assert media_cls.call_count == 12
    first_caption = media_cls.call_args_list[0].kwargs['caption']
    assert 'Part 1/12' in first_caption and 'Title: T' in first_caption
    assert media_cls.call_args_list[1].kwargs['caption'] == 'Part 2/12'
    message.reply_video.assert_not_awaited()


@pytest.mark.asyncio
async def test_segments_in_private_chat_are_sent_in_order():
    message = _message(ChatType.PRIVATE)

    with patch('douyin_pipeline.delivery.asyncio.sleep', AsyncMock()) as sleep:
        await TelegramDelivery('@bot').deliver(message, _outcome(3))

    videos = [call.kwargs['video'].name for call in message.reply_video.await_args_list]
    assert videos == ['abc_chunk_000.mp4', 'abc_chunk_001.mp4', 'abc_chunk_002.mp4']
    assert sleep.await_count == 2


@pytest.mark.asyncio
async def test_empty_outcome_raises():
    with pytest.raises(ValueError):
        await TelegramDelivery('@bot').deliver(_message(), PipelineOutcome(status=STATUS_OK))
