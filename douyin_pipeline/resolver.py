"""
Provider fallback chain.

Providers are tried one after another in priority order until one yields a
usable video URL (and, when a fetch step is supplied, a downloaded file).
"""

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional

import aiohttp

from douyin_pipeline.exceptions import FetchError, ProviderError
from douyin_pipeline.providers import BaseProvider, ResolvedMedia

logger = logging.getLogger(__name__)

FetchStep = Callable[[ResolvedMedia], Awaitable[Any]]


@dataclass
class ChainResult:
    """Outcome of a successful chain run."""
    media: ResolvedMedia
    provider_num: int
    provider_name: str
    payload: Any = None


class ResolverChain:
    """Tries extraction providers in order with fallback."""

    def __init__(self, providers: List[BaseProvider], timeout: float = 15.0,
                 user_agent: Optional[str] = None):
        """
        Initialize the chain.

        Args:
            providers: Providers in the order they should be tried
            timeout: Per-provider request timeout in seconds
            user_agent: User-Agent sent to providers
        """
        self.providers = list(providers)
        self.timeout = timeout
        self.user_agent = user_agent

    def get_providers(self) -> List[str]:
        """Provider names in the order they are tried."""
        return [provider.name for provider in self.providers]

    async def resolve(self, session: aiohttp.ClientSession, share_link: str,
                      fetch: Optional[FetchStep] = None) -> Optional[ChainResult]:
        """
        Resolve a share link, falling back through providers.

        Args:
            session: HTTP session
            share_link: Douyin share link
            fetch: Optional coroutine run on each resolved URL; a FetchError
                   from it moves on to the next provider

        Returns:
            ChainResult, or None if every provider failed
        """
        logger.info(f"[CHAIN] Starting provider fallback chain for {share_link}")

        if not self.providers:
            logger.warning(f"[CHAIN] ✗ No providers configured")
            return None

        total = len(self.providers)
        for i, provider in enumerate(self.providers, 1):
            logger.info(f"[CHAIN] Provider {i}/{total}: {provider.name} (priority: {provider.priority})")

            try:
                media = await provider.resolve(
                    session, share_link, timeout=self.timeout, user_agent=self.user_agent
                )
                payload = await fetch(media) if fetch else None
            except ProviderError as e:
                logger.warning(f"[CHAIN] ✗ {e}, trying next provider...")
                continue
            except FetchError as e:
                logger.warning(f"[CHAIN] ✗ {provider.name} resolved but download failed: {e}, trying next provider...")
                continue
            except Exception as e:
                logger.error(f"[CHAIN] ✗ Provider {provider.name} raised exception: {type(e).__name__}: {e}", exc_info=True)
                continue

            logger.info(f"[CHAIN] ✓ SUCCESS with provider #{i}: {provider.name}")
            return ChainResult(media=media, provider_num=i, provider_name=provider.name, payload=payload)

        logger.error(f"[CHAIN] ✗ ALL {total} provider(s) FAILED")
        return None


__all__ = ['ChainResult', 'ResolverChain']
