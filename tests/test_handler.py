"""
Tests for the Telegram pipeline handler.
"""

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest
from telegram.constants import ChatType

from douyin_pipeline.handler import DouyinDownloadHandler
from douyin_pipeline.processor import (
    STATUS_OK,
    STATUS_PROVIDERS_FAILED,
    DeliveryItem,
    PipelineOutcome,
)
from pipeline import MessagePipeline, PipelineContext

SHARE_TEXT = "https://v.douyin.com/abcDEF1/"


def _context(text):
    update = MagicMock()
    update.message.text = text
    update.message.chat.title = None
    update.message.chat.type = ChatType.PRIVATE
    update.message.reply_text = AsyncMock()
    context = MagicMock()
    context.bot.send_chat_action = AsyncMock()
    return PipelineContext(update=update, context=context)


def _handler(settings, outcome=None, run_error=None, deliver_error=None):
    douyin_pipeline = MagicMock()
    douyin_pipeline.run = AsyncMock(return_value=outcome, side_effect=run_error)
    douyin_pipeline.finish = MagicMock()
    delivery = MagicMock()
    delivery.deliver = AsyncMock(side_effect=deliver_error)
    return DouyinDownloadHandler(settings, douyin_pipeline=douyin_pipeline, delivery=delivery)


def _ok_outcome():
    return PipelineOutcome(
        status=STATUS_OK,
        items=[DeliveryItem(path=Path('/cache/abcDEF1.mp4'))],
        title='T',
        provider_name='AA1-API',
        provider_num=1,
    )


@pytest.mark.asyncio
async def test_message_without_link_is_ignored(settings):
    handler = _handler(settings)
    ctx = _context("just chatting")

    await handler.process(ctx)

    handler.douyin_pipeline.run.assert_not_awaited()
    ctx.context.bot.send_chat_action.assert_not_awaited()
    assert ctx.data['douyin_link_found'] is False
    assert ctx.should_continue


@pytest.mark.asyncio
async def test_video_is_delivered_and_finished(settings):
    outcome = _ok_outcome()
    handler = _handler(settings, outcome=outcome)
    ctx = _context(SHARE_TEXT)

    await handler.process(ctx)

    handler.delivery.deliver.assert_awaited_once_with(ctx.message, outcome)
    handler.douyin_pipeline.finish.assert_called_once_with(outcome)
    ctx.message.reply_text.assert_not_awaited()
    assert ctx.data['douyin_sent'] is True
    assert not ctx.should_continue


@pytest.mark.asyncio
async def test_all_providers_failed_sends_one_notice(settings):
    handler = _handler(settings, outcome=PipelineOutcome(status=STATUS_PROVIDERS_FAILED))
    ctx = _context(SHARE_TEXT)

    await handler.process(ctx)

    ctx.message.reply_text.assert_awaited_once()
    assert 'providers failed' in ctx.message.reply_text.await_args.args[0]
    handler.delivery.deliver.assert_not_awaited()
    assert ctx.data['douyin_error'] == 'providers_failed'


@pytest.mark.asyncio
async def test_delivery_error_is_contained(settings):
    outcome = _ok_outcome()
    handler = _handler(settings, outcome=outcome, deliver_error=RuntimeError("upload failed"))
    ctx = _context(SHARE_TEXT)

    await handler.process(ctx)

    ctx.message.reply_text.assert_awaited_once()
    handler.douyin_pipeline.finish.assert_called_once_with(outcome)
    assert ctx.data['douyin_error'] == 'upload failed'


@pytest.mark.asyncio
async def test_unexpected_pipeline_error_is_contained(settings):
    handler = _handler(settings, run_error=RuntimeError("boom"))
    ctx = _context(SHARE_TEXT)

    await handler.process(ctx)

    ctx.message.reply_text.assert_awaited_once()
    handler.douyin_pipeline.finish.assert_not_called()


@pytest.mark.asyncio
async def test_runs_inside_message_pipeline(settings):
    handler = _handler(settings, outcome=_ok_outcome())
    message_pipeline = MessagePipeline().add_handler(handler)
    ctx = _context(SHARE_TEXT)

    result = await message_pipeline.run(ctx.update, ctx.context)

    assert result.data['douyin_sent'] is True
    handler.delivery.deliver.assert_awaited_once()


@pytest.mark.asyncio
async def test_non_text_message_is_skipped(settings):
    handler = _handler(settings)
    message_pipeline = MessagePipeline().add_handler(handler)
    update = MagicMock()
    update.message.text = None

    await message_pipeline.run(update, MagicMock())

    handler.douyin_pipeline.run.assert_not_awaited()


@pytest.mark.asyncio
async def test_segmented_delivery_is_logged(settings, caplog):
    outcome = PipelineOutcome(
        status=STATUS_OK,
        items=[DeliveryItem(path=Path(f'/cache/abc_chunk_00{i}.mp4'), label=f'Part {i + 1}/2') for i in range(2)],
        provider_name='AA1-API',
        provider_num=1,
    )
    handler = _handler(settings, outcome=outcome)
    ctx = _context(SHARE_TEXT)

    with caplog.at_level('INFO', logger='douyin_pipeline.handler'):
        await handler.process(ctx)

    assert ctx.data['douyin_parts'] == 2
    assert any('(segmented)' in record.getMessage() for record in caplog.records)
