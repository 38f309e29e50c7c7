"""Application configuration and tunable scoring constants."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Dict


def _get_env(name: str, default: str) -> str:
    value = os.getenv(name)
    return value if value is not None else default


def _get_bool(name: str, default: str) -> bool:
    return _get_env(name, default).lower() in {"1", "true", "yes"}


@dataclass(frozen=True)
class Settings:
    """Simple settings container with environment variable overrides."""

    google_api_key: str = _get_env("GOOGLE_SEARCH_API_KEY", "")
    google_cse_id: str = _get_env("GOOGLE_SEARCH_ENGINE_ID", "")
    serpapi_key: str = _get_env("SERPAPI_KEY", "")
    min_results: int = int(_get_env("MIN_RESULTS", "10"))
    target_results: int = int(_get_env("TARGET_RESULTS", "20"))
    primary_concurrency: int = int(_get_env("PRIMARY_CONCURRENCY", "3"))
    secondary_concurrency: int = int(_get_env("SECONDARY_CONCURRENCY", "2"))
    tertiary_concurrency: int = int(_get_env("TERTIARY_CONCURRENCY", "1"))
    provider_timeout_seconds: float = float(_get_env("PROVIDER_TIMEOUT_SECONDS", "10"))
    rate_limit_interval_seconds: float = float(_get_env("RATE_LIMIT_INTERVAL_SECONDS", "1.0"))
    max_results_per_source: int = int(_get_env("MAX_RESULTS_PER_SOURCE", "10"))
    region: str = _get_env("SEARCH_REGION", "in")
    language: str = _get_env("SEARCH_LANGUAGE", "en")
    default_currency: str = _get_env("DEFAULT_CURRENCY", "INR")
    cache_enabled: bool = _get_bool("CACHE_ENABLED", "true")
    cache_ttl_seconds: int = int(_get_env("CACHE_TTL_SECONDS", "1800"))
    redis_host: str = _get_env("REDIS_HOST", "localhost")
    redis_port: int = int(_get_env("REDIS_PORT", "6379"))
    page_size: int = int(_get_env("PAGE_SIZE", "10"))
    sample_catalog_path: str = _get_env("SAMPLE_CATALOG_PATH", "sample_catalog.json")
    sample_catalog_enabled: bool = _get_bool("SAMPLE_CATALOG_ENABLED", "false")
    sample_catalog_fallback: bool = _get_bool("SAMPLE_CATALOG_FALLBACK", "false")
    log_level: str = _get_env("LOG_LEVEL", "INFO")
    app_env: str = _get_env("APP_ENV", "production")

    @property
    def development_mode(self) -> bool:
        return self.app_env.lower() == "development"

    def tier_concurrency(self, tier: str) -> int:
        limits = {
            "primary": self.primary_concurrency,
            "secondary": self.secondary_concurrency,
            "tertiary": self.tertiary_concurrency,
        }
        return max(1, limits.get(tier, 1))


@dataclass(frozen=True)
class EnsembleWeights:
    rule_based: float = 0.4
    feature_based: float = 0.35
    zero_shot: float = 0.25
    alternative_factor: float = 0.5
    agreement_bonus: float = 0.1
    ambiguity_penalty: float = 0.1
    ambiguity_gap: float = 0.2

    def for_method(self, method: str) -> float:
        return {
            "rule_based": self.rule_based,
            "feature_based": self.feature_based,
            "zero_shot": self.zero_shot,
        }.get(method, 0.0)


@dataclass(frozen=True)
class RelevanceWeights:
    lexical: float = 0.25
    semantic: float = 0.35
    attribute: float = 0.25
    cross_modal: float = 0.15
    confident_shift: float = 0.1
    confident_threshold: float = 0.8
    bm25_k1: float = 1.2
    bm25_b: float = 0.75
    bm25_avg_doc_len: float = 50.0


@dataclass(frozen=True)
class FusionWeights:
    rrf_k: int = 60
    tier_weights: Dict[str, float] = field(
        default_factory=lambda: {"primary": 1.0, "secondary": 0.8, "tertiary": 0.6}
    )
    fallback_tier_weight: float = 0.5
    seller_reputation: float = 0.25
    availability: float = 0.20
    price: float = 0.25
    rating: float = 0.15
    reviews: float = 0.15
    rrf_share: float = 0.6
    business_share: float = 0.4
    neutral_business: float = 0.5


settings = Settings()
