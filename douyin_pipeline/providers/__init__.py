"""
Extraction Providers Auto-Discovery System

Each provider is a third-party HTTP API that turns a Douyin share link into a
direct, watermark-free video URL. Providers live in modules of this package and
are discovered at start-up; priority decides the order they are tried in.
"""

import asyncio
import importlib
import inspect
import logging
import os
import pkgutil
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Type

import aiohttp

from douyin_pipeline.exceptions import ProviderError

logger = logging.getLogger(__name__)

FORM_CONTENT_TYPE = 'application/x-www-form-urlencoded'


@dataclass(frozen=True)
class ProviderRequest:
    """HTTP request description produced by a provider."""
    method: str
    url: str
    params: Optional[Dict[str, str]] = None
    data: Optional[Dict[str, str]] = None
    headers: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ResolvedMedia:
    """Direct video URL returned by a successful provider."""
    url: str
    title: str
    provider: str


def first_present(data: Dict[str, Any], keys: Iterable[str]) -> Optional[str]:
    """Return the first non-empty string value among keys."""
    for key in keys:
        value = data.get(key)
        if isinstance(value, str) and value:
            return value
    return None


class BaseProvider:
    """
    Base class for all extraction providers.

    Subclasses set PROVIDER_NAME, ENDPOINT, METHOD and SUCCESS_CODE and
    implement parse_result(). build_request() covers the common case of a
    single "url" parameter sent as a query string (GET) or form body (POST).
    """

    # Used for env vars: {PROVIDER_NAME}_PRIORITY, {PROVIDER_NAME}_ENABLED
    PROVIDER_NAME = None

    ENDPOINT = None
    METHOD = 'GET'

    # Value of the "code" field that means success
    SUCCESS_CODE = 200

    # Default priority if not specified in environment (0-100, higher = tried first)
    DEFAULT_PRIORITY = 50

    def __init__(self, name: Optional[str] = None):
        self.name = name or self.PROVIDER_NAME or self.__class__.__name__
        self.priority = self.DEFAULT_PRIORITY

    @property
    def endpoint(self) -> Optional[str]:
        return self.ENDPOINT

    @property
    def method(self) -> str:
        return self.METHOD.upper()

    @property
    def success_code(self) -> Any:
        return self.SUCCESS_CODE

    def is_configured(self) -> bool:
        """Whether the provider has everything it needs to run."""
        return bool(self.endpoint)

    def build_request(self, share_link: str) -> ProviderRequest:
        """
        Build the HTTP request for a share link.

        Args:
            share_link: Douyin share link

        Returns:
            ProviderRequest with the link as a query parameter or form field
        """
        if self.method == 'POST':
            return ProviderRequest(
                method='POST',
                url=self.endpoint,
                data={'url': share_link},
                headers={'Content-Type': FORM_CONTENT_TYPE},
            )
        return ProviderRequest(method='GET', url=self.endpoint, params={'url': share_link})

    def parse_result(self, data: Dict[str, Any]) -> Optional[str]:
        """
        Pull the direct video URL out of the response "data" object.

        Args:
            data: The "data" field of the JSON response

        Returns:
            Video URL, or None if the payload does not contain one
        """
        raise NotImplementedError("Subclass must implement parse_result()")

    def is_success(self, code: Any) -> bool:
        # Some APIs send the code as a string
        return code == self.success_code or str(code) == str(self.success_code)

    async def resolve(self, session: aiohttp.ClientSession, share_link: str,
                      timeout: float = 15.0, user_agent: Optional[str] = None) -> ResolvedMedia:
        """
        Ask this provider for the direct video URL.

        Args:
            session: HTTP session
            share_link: Douyin share link
            timeout: Total request timeout in seconds
            user_agent: User-Agent header value

        Returns:
            ResolvedMedia on success

        Raises:
            ProviderError: On any failure (HTTP, JSON, success code, payload)
        """
        request = self.build_request(share_link)
        headers = dict(request.headers)
        if user_agent:
            headers['User-Agent'] = user_agent

        logger.info(f"[PROVIDER:{self.name}] {request.method} {request.url}")

        try:
            async with session.request(
                request.method,
                request.url,
                params=request.params,
                data=request.data,
                headers=headers,
                timeout=aiohttp.ClientTimeout(total=timeout),
            ) as response:
                logger.info(f"[PROVIDER:{self.name}] Response status: {response.status}")
                if not 200 <= response.status < 300:
                    raise ProviderError(self.name, f"HTTP status {response.status}")
                payload = await response.json(content_type=None)
        except asyncio.TimeoutError:
            raise ProviderError(self.name, f"timed out after {timeout:.0f}s")
        except aiohttp.ClientError as e:
            raise ProviderError(self.name, f"request failed: {type(e).__name__}: {e}")
        except ValueError as e:
            raise ProviderError(self.name, f"invalid JSON: {e}")

        if not isinstance(payload, dict):
            raise ProviderError(self.name, f"unexpected response type {type(payload).__name__}")

        code = payload.get('code')
        if not self.is_success(code):
            raise ProviderError(self.name, f"error code {code}: {payload.get('msg') or 'no message'}")

        data = payload.get('data')
        if not isinstance(data, dict) or not data:
            raise ProviderError(self.name, "response has no 'data' object")

        video_url = self.parse_result(data)
        if not video_url:
            raise ProviderError(self.name, f"no video URL in data (keys: {list(data.keys())})")

        title = data.get('title') or 'Untitled'
        logger.info(f"[PROVIDER:{self.name}] ✓ Video URL: {video_url[:100]}")
        return ResolvedMedia(url=video_url, title=str(title), provider=self.name)

    def __str__(self) -> str:
        return self.name


def discover_providers() -> List[Type[BaseProvider]]:
    """
    Automatically discover all provider classes in this package.

    Returns:
        List of provider classes (not instances)
    """
    providers = []

    for module_info in pkgutil.iter_modules(__path__):
        if module_info.name.startswith('_'):
            continue

        try:
            module = importlib.import_module(f"{__name__}.{module_info.name}")
        except Exception as e:
            logger.error(f"Could not load provider from {module_info.name}: {e}")
            continue

        for _, obj in inspect.getmembers(module, inspect.isclass):
            if (issubclass(obj, BaseProvider) and
                    obj is not BaseProvider and
                    obj.__module__ == module.__name__):
                providers.append(obj)

    return providers


def load_providers_from_env(provider_classes: Optional[List[Type[BaseProvider]]] = None) -> List[BaseProvider]:
    """
    Initialize providers and order them by priority.

    Environment variables per provider:
    - {PROVIDER_NAME}_ENABLED: set to "false" to disable
    - {PROVIDER_NAME}_PRIORITY: override priority (0-100)

    Args:
        provider_classes: Classes to load (discovered if omitted)

    Returns:
        Initialized providers, highest priority first
    """
    if provider_classes is None:
        provider_classes = discover_providers()

    initialized = []

    for provider_class in provider_classes:
        env_name = provider_class.PROVIDER_NAME
        if not env_name:
            logger.warning(f"Skipping {provider_class.__name__} - PROVIDER_NAME not defined")
            continue

        if os.getenv(f"{env_name}_ENABLED", "true").lower() == "false":
            logger.info(f"  ⊘ Skipping {env_name} (disabled via {env_name}_ENABLED)")
            continue

        try:
            provider = provider_class()
        except Exception as e:
            logger.error(f"  ✗ Failed to initialize {provider_class.__name__}: {e}")
            continue

        if not provider.is_configured():
            logger.debug(f"  Skipping {provider.name} - endpoint not configured")
            continue

        priority_str = os.getenv(f"{env_name}_PRIORITY")
        if priority_str:
            try:
                provider.priority = max(0, min(100, int(priority_str)))
            except ValueError:
                logger.warning(f"Invalid priority for {provider.name}: {priority_str}, using default")

        initialized.append(provider)
        logger.info(f"  ✓ Loaded {provider.name} (priority: {provider.priority})")

    # Sort by priority (highest first); ties keep discovery order
    initialized.sort(key=lambda p: p.priority, reverse=True)

    return initialized


__all__ = [
    'BaseProvider',
    'ProviderRequest',
    'ResolvedMedia',
    'first_present',
    'discover_providers',
    'load_providers_from_env',
]
