"""
Routing of incoming Telegram text messages to feature handlers.

Handlers are tried from the highest priority down. The first one that calls
ctx.stop() owns the message; an exception inside a handler also ends the run,
since handlers send their own error replies and a second handler must not
answer the same message.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional

from telegram import Update
from telegram.ext import ContextTypes

logger = logging.getLogger(__name__)


@dataclass
class PipelineContext:
    """
    Per-message state shared by the handlers.

    Attributes:
        update: Telegram update being handled
        context: Callback context (gives access to the bot)
        should_continue: Cleared by stop(); no further handlers run
        handled_by: Name of the handler that stopped the run
        data: Flags handlers leave for each other and for tests
    """
    update: Update
    context: ContextTypes.DEFAULT_TYPE
    should_continue: bool = True
    handled_by: Optional[str] = None
    data: dict[str, Any] = field(default_factory=dict)

    @property
    def message(self):
        return self.update.message

    @property
    def message_text(self) -> Optional[str]:
        return self.message.text if self.message else None

    @property
    def chat_label(self) -> str:
        """Chat title with its id, for log lines."""
        chat = self.message.chat
        title = chat.title or 'Private'
        return f"'{title}'({chat.id})"

    @property
    def user_label(self) -> str:
        user = self.message.from_user
        return user.full_name if user else 'Unknown'

    def stop(self) -> None:
        self.should_continue = False


class PipelineHandler(ABC):
    """A feature that may claim a text message."""

    DEFAULT_PRIORITY = 50

    def __init__(self, name: Optional[str] = None):
        self.name = name or self.__class__.__name__
        self.priority = self.DEFAULT_PRIORITY

    async def should_process(self, ctx: PipelineContext) -> bool:
        """By default only messages with text are offered to a handler."""
        return ctx.message_text is not None

    @abstractmethod
    async def process(self, ctx: PipelineContext) -> None:
        """Handle the message; call ctx.stop() once it has been answered."""


class MessagePipeline:
    """Offers each message to the registered handlers in priority order."""

    def __init__(self):
        self.handlers: list[PipelineHandler] = []

    def add_handler(self, handler: PipelineHandler) -> "MessagePipeline":
        self.handlers.append(handler)
        self.handlers.sort(key=lambda h: h.priority, reverse=True)
        logger.debug(f"[PIPELINE] Registered {handler.name} (priority {handler.priority})")
        return self

    async def run(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> PipelineContext:
        """
        Route one update.

        Returns:
            The context, with handled_by set if a handler claimed the message
        """
        ctx = PipelineContext(update=update, context=context)

        for handler in self.handlers:
            try:
                if not await handler.should_process(ctx):
                    continue
                await handler.process(ctx)
            except Exception as e:
                logger.error(f"[PIPELINE] ✗ {handler.name} raised {type(e).__name__}: {e}", exc_info=True)
                ctx.stop()

            if not ctx.should_continue:
                ctx.handled_by = handler.name
                break

        if ctx.handled_by is None:
            logger.debug("[PIPELINE] No handler claimed the message")
        return ctx


__all__ = [
    'PipelineContext',
    'PipelineHandler',
    'MessagePipeline',
]
