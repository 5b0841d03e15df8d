#!/usr/bin/env python3
"""
whiteCat Douyin - Telegram bot that sends Douyin videos shared in chats

Monitors messages for Douyin share links, resolves them through public parser
APIs, and replies with the video (compressed or split when it is too large).
"""

import os
import logging
import asyncio

from dotenv import load_dotenv
from telegram import Update
from telegram.ext import Application, MessageHandler, filters, ContextTypes
from aiohttp import web

from douyin_pipeline import DouyinDownloadHandler, Settings
from pipeline import MessagePipeline

# Load environment variables early for logging configuration
load_dotenv()

# Configure logging with level from environment variable
LOG_LEVEL = os.getenv('LOG_LEVEL', 'WARNING').upper()
LOG_LEVEL_MAP = {
    'DEBUG': logging.DEBUG,
    'INFO': logging.INFO,
    'WARNING': logging.WARNING,
    'ERROR': logging.ERROR,
    'CRITICAL': logging.CRITICAL
}
logging.basicConfig(
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    level=LOG_LEVEL_MAP.get(LOG_LEVEL, logging.WARNING)
)
logger = logging.getLogger(__name__)

# Suppress verbose logging from external libraries
logging.getLogger('httpx').setLevel(logging.WARNING)
logging.getLogger('httpcore').setLevel(logging.WARNING)
logging.getLogger('telegram').setLevel(logging.WARNING)
logging.getLogger('telegram.ext').setLevel(logging.WARNING)
logging.getLogger('aiohttp.access').setLevel(logging.WARNING)

TELEGRAM_BOT_TOKEN = os.getenv('TELEGRAM_BOT_TOKEN')


def build_pipeline(settings: Settings) -> tuple[MessagePipeline, DouyinDownloadHandler]:
    """Create the message pipeline with the Douyin handler."""
    douyin_handler = DouyinDownloadHandler(settings)
    if not douyin_handler.douyin_pipeline.chain.providers:
        raise ValueError("No Douyin providers could be loaded! Check your environment variables.")

    message_pipeline = MessagePipeline()
    message_pipeline.add_handler(douyin_handler)
    return message_pipeline, douyin_handler


async def health_check_server(douyin_handler: DouyinDownloadHandler):
    """
    Start a simple HTTP health check server for deployment platforms.

    Environment Variables:
        PORT: HTTP port to bind to (default: 8080)

    Endpoints:
        GET /        : Returns 200 OK with bot status
        GET /health  : Returns 200 OK with providers and cache usage
    """
    logger.info("[HEALTH] Starting health check server...")

    async def handle_root(request):
        return web.Response(
            text="whiteCat Douyin bot is running! 😺",
            status=200
        )

    async def handle_health(request):
        douyin_pipeline = douyin_handler.douyin_pipeline
        health_data = {
            "status": "healthy",
            "service": "whitecat-douyin-bot",
            "providers": douyin_pipeline.chain.get_providers(),
            "cache_files": douyin_pipeline.cache.file_count(),
            "cache_max_files": douyin_pipeline.cache.max_files,
        }
        return web.json_response(health_data, status=200)

    app = web.Application()
    app.router.add_get('/', handle_root)
    app.router.add_get('/health', handle_health)

    port = int(os.getenv('PORT', 8080))

    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, '0.0.0.0', port)
    await site.start()

    logger.info(f"[HEALTH] ✓ Health check server started on http://0.0.0.0:{port}")

    try:
        await asyncio.Event().wait()  # Run forever
    except asyncio.CancelledError:
        logger.info("[HEALTH] Health check server shutting down...")
        await runner.cleanup()


async def run_bot(message_pipeline: MessagePipeline):
    """Run the Telegram bot with polling."""
    logger.info("Starting whiteCat Douyin bot...")

    application = Application.builder().token(TELEGRAM_BOT_TOKEN).build()

    async def handle_message(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        await message_pipeline.run(update, context)

    # Handlers run concurrently so a long transcode does not block other chats
    application.add_handler(MessageHandler(filters.TEXT, handle_message, block=False))

    await application.initialize()
    await application.start()
    await application.updater.start_polling(allowed_updates=Update.ALL_TYPES)
    logger.info("Bot started! Share Douyin links in Telegram chats.")

    try:
        await asyncio.Event().wait()
    except asyncio.CancelledError:
        logger.info("Bot shutting down...")
    finally:
        await application.updater.stop()
        await application.stop()
        await application.shutdown()


def main() -> None:
    """
    Main entry point - runs bot and health check server concurrently.

    Set ENABLE_HEALTH_CHECK=false to disable the HTTP server for local
    development or background worker deployments.
    """
    if not TELEGRAM_BOT_TOKEN:
        raise ValueError("TELEGRAM_BOT_TOKEN is not set in .env file")

    settings = Settings.from_env()
    message_pipeline, douyin_handler = build_pipeline(settings)
    enable_health_check = os.getenv('ENABLE_HEALTH_CHECK', 'true').lower() == 'true'

    async def run_all():
        tasks = [run_bot(message_pipeline)]

        if enable_health_check:
            logger.info("[MAIN] Health check server enabled")
            tasks.append(health_check_server(douyin_handler))
        else:
            logger.info("[MAIN] Health check server disabled (set ENABLE_HEALTH_CHECK=true to enable)")

        await asyncio.gather(*tasks)

    try:
        asyncio.run(run_all())
    except KeyboardInterrupt:
        logger.info("Received exit signal, shutting down...")


if __name__ == '__main__':
    main()
