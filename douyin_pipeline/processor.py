"""
Douyin pipeline core.

    message text -> share link -> cache lookup
        hit:  deliver cached file
        miss: provider chain (+ download) -> compress/split -> deliver
    after delivery: delete transient files, evict old cache entries

Transport is left to the caller (see delivery.py); this module only decides
which files to send and cleans up afterwards.
"""

import hashlib
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

import aiohttp

from douyin_pipeline.cache import VideoCache
from douyin_pipeline.config import Settings
from douyin_pipeline.downloader import MediaFetcher
from douyin_pipeline.ffmpeg import FfmpegTool
from douyin_pipeline.links import ShareLink, extract_share_link
from douyin_pipeline.providers import BaseProvider, ResolvedMedia, load_providers_from_env
from douyin_pipeline.resolver import ResolverChain
from douyin_pipeline.transcoder import MediaProcessor, PreparedMedia

logger = logging.getLogger(__name__)

STATUS_NOT_APPLICABLE = 'not_applicable'
STATUS_PROVIDERS_FAILED = 'providers_failed'
STATUS_OK = 'ok'

UNCACHED_PREFIX = 'nocache_'


@dataclass
class DeliveryItem:
    """One video to send, with an optional "Part i/n" label."""
    path: Path
    label: Optional[str] = None


@dataclass
class PipelineOutcome:
    """
    Result of DouyinPipeline.run().

    Attributes:
        status: STATUS_OK, STATUS_PROVIDERS_FAILED or STATUS_NOT_APPLICABLE
        share_link: Link found in the message
        items: Videos to send, in order
        title: Video title reported by the provider (None for cache hits)
        provider_name: Provider that resolved the link
        provider_num: 1-based position of that provider in the chain
        from_cache: True if served from the local cache
        prepared: Post-processing result (None for cache hits)
        temporary: Files to delete once delivery is done
    """
    status: str
    share_link: Optional[ShareLink] = None
    items: List[DeliveryItem] = field(default_factory=list)
    title: Optional[str] = None
    provider_name: Optional[str] = None
    provider_num: Optional[int] = None
    from_cache: bool = False
    prepared: Optional[PreparedMedia] = None
    temporary: List[Path] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status == STATUS_OK

    @property
    def is_segmented(self) -> bool:
        return len(self.items) > 1


def uncached_key(url: str) -> str:
    """Cache key for links without a content id; such files are deleted after delivery."""
    return UNCACHED_PREFIX + hashlib.sha1(url.encode('utf-8')).hexdigest()[:12]


def build_items(prepared: PreparedMedia) -> List[DeliveryItem]:
    files = prepared.files
    if len(files) == 1:
        return [DeliveryItem(path=files[0])]
    total = len(files)
    return [DeliveryItem(path=path, label=f"Part {i}/{total}") for i, path in enumerate(files, 1)]


class DouyinPipeline:
    """Runs the link -> cache -> providers -> ffmpeg flow for one message."""

    def __init__(self, settings: Settings, chain: ResolverChain, cache: VideoCache,
                 fetcher: MediaFetcher, processor: MediaProcessor):
        self.settings = settings
        self.chain = chain
        self.cache = cache
        self.fetcher = fetcher
        self.processor = processor

    @classmethod
    def from_settings(cls, settings: Settings,
                      providers: Optional[List[BaseProvider]] = None,
                      tool: Optional[FfmpegTool] = None) -> "DouyinPipeline":
        """
        Wire up the pipeline from settings.

        Args:
            settings: Pipeline settings
            providers: Providers in priority order (loaded from env if omitted)
            tool: ffmpeg wrapper (built from settings if omitted)
        """
        if providers is None:
            providers = load_providers_from_env()
        if tool is None:
            tool = FfmpegTool(settings.ffmpeg_path, settings.ffmpeg_install_script)

        cache = VideoCache(settings.cache_dir, settings.cache_max_files)
        chain = ResolverChain(providers, timeout=settings.provider_timeout, user_agent=settings.user_agent)
        fetcher = MediaFetcher(cache, timeout=settings.download_timeout, user_agent=settings.user_agent)
        processor = MediaProcessor(settings, tool, cache)
        return cls(settings, chain, cache, fetcher, processor)

    async def run(self, session: aiohttp.ClientSession, text: Optional[str]) -> PipelineOutcome:
        """
        Process one message.

        Args:
            session: HTTP session used for providers and downloads
            text: Message text

        Returns:
            PipelineOutcome; expected failures are reported through its status
        """
        link = extract_share_link(text)
        if not link:
            return PipelineOutcome(status=STATUS_NOT_APPLICABLE)

        cached = self.cache.lookup(link.content_id)
        if cached:
            return PipelineOutcome(
                status=STATUS_OK,
                share_link=link,
                items=[DeliveryItem(path=cached)],
                from_cache=True,
            )

        key = link.content_id or uncached_key(link.url)

        async def fetch(media: ResolvedMedia) -> Path:
            return await self.fetcher.fetch(session, media.url, key)

        result = await self.chain.resolve(session, link.url, fetch=fetch)
        if not result:
            return PipelineOutcome(status=STATUS_PROVIDERS_FAILED, share_link=link)

        raw_path = result.payload
        try:
            prepared = await self.processor.prepare(raw_path, key)
        except Exception as e:
            logger.error(f"[DOUYIN] ✗ Post-processing failed, sending raw file: {type(e).__name__}: {e}", exc_info=True)
            prepared = PreparedMedia(final_path=raw_path)

        temporary = []
        if not link.content_id:
            temporary = [*prepared.files, prepared.final_path]

        quality = f"{prepared.height}p" if prepared.height else "original"
        logger.info(f"[DOUYIN] ✓ Ready: '{result.media.title}' via {result.provider_name}, {len(prepared.files)} file(s), {quality}")
        return PipelineOutcome(
            status=STATUS_OK,
            share_link=link,
            items=build_items(prepared),
            title=result.media.title,
            provider_name=result.provider_name,
            provider_num=result.provider_num,
            prepared=prepared,
            temporary=temporary,
        )

    def finish(self, outcome: PipelineOutcome) -> None:
        """Delete transient files after delivery and evict old cache entries."""
        if outcome.prepared:
            outcome.prepared.cleanup(self.cache)
        for path in outcome.temporary:
            self.cache.remove(path)
        if outcome.share_link:
            self.cache.evict()


__all__ = [
    'STATUS_NOT_APPLICABLE',
    'STATUS_PROVIDERS_FAILED',
    'STATUS_OK',
    'DeliveryItem',
    'PipelineOutcome',
    'DouyinPipeline',
    'build_items',
    'uncached_key',
]
