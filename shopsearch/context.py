"""Explicitly constructed per-process state handed to the pipeline."""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List

from .cache import CacheBackend, build_cache
from .config import Settings
from .providers import SearchProvider, build_providers
from .sources import DEFAULT_SOURCES, ProviderStats, SourceSpec, with_provider

logger = logging.getLogger(__name__)


@dataclass
class PipelineContext:
    settings: Settings
    cache: CacheBackend | None = None
    stats: ProviderStats = field(default_factory=ProviderStats)
    providers: Dict[str, SearchProvider] = field(default_factory=dict)
    sources: List[SourceSpec] = field(default_factory=list)
    clock: Callable[[], float] = time.monotonic

    async def aclose(self) -> None:
        for name, provider in self.providers.items():
            try:
                await provider.aclose()
            except Exception as exc:  # pragma: no cover
                logger.warning("Closing provider %s failed: %s", name, exc)


def usable_sources(sources: List[SourceSpec], providers: Dict[str, SearchProvider]) -> List[SourceSpec]:
    kept = []
    for source in sources:
        if source.provider in providers:
            kept.append(source)
        else:
            logger.info("Skipping source %s: provider %s not configured", source.name, source.provider)
    return kept


def build_context(settings: Settings) -> PipelineContext:
    """Wire the configured providers, sources and cache.

    With ``SAMPLE_CATALOG_ENABLED`` every source is routed to the offline
    sample catalog, which still honours each source's site filter.
    """
    providers = build_providers(settings)
    if settings.sample_catalog_enabled:
        sources = with_provider(DEFAULT_SOURCES, "sample")
    else:
        sources = list(DEFAULT_SOURCES)
    context = PipelineContext(
        settings=settings,
        cache=build_cache(settings),
        providers=providers,
        sources=usable_sources(sources, providers),
    )
    logger.info(
        "Pipeline context ready: providers=%s sources=%s",
        sorted(providers),
        [source.name for source in context.sources],
    )
    return context
