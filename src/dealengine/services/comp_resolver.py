# src/dealengine/services/comp_resolver.py
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, Iterable, List, Literal, Mapping, Optional

from dealengine.adapters.comp_providers import (
    PROVIDER_TAGS,
    ProviderError,
    UnknownProviderError,
    make_provider,
    parse_provider_response,
)
from dealengine.adapters.comps_cache import CompCache, key_for
from dealengine.adapters.config import AppConfig, config
from dealengine.adapters.http_retry import (
    RetryExhaustedError,
    RetryPolicy,
    aretry_with_backoff,
    retry_with_backoff,
)
from dealengine.adapters.logging_utils import get_logger, log_event
from dealengine.domain.comps import CompQuery, CompRecord
from dealengine.domain.ports import CompProvider

logger = get_logger(__name__)

ResolutionSource = Literal["cache", "provider", "none"]

FALLBACK_NOTICE = "Proceeding with estimated values."


@dataclass
class CompResolution:
    """
    ``comps`` may be empty; that is a valid, degraded result. ``notice`` is a
    user-facing message when resolution failed.
    """
    comps: List[CompRecord] = field(default_factory=list)
    notice: Optional[str] = None
    source: ResolutionSource = "none"
    provider: Optional[str] = None


def normalize_comps(comps: Iterable[CompRecord]) -> List[CompRecord]:
    """Drop anything without a positive price."""
    return [c for c in comps if c is not None and c.price > 0]


class CompResolver:
    def __init__(
        self,
        cache: CompCache | None = None,
        providers: Mapping[str, CompProvider] | None = None,
        policy: RetryPolicy | None = None,
        sleep: Callable[[float], None] = time.sleep,
        async_sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        cfg: AppConfig | None = None,
    ) -> None:
        self.cache = cache if cache is not None else CompCache()
        self._providers: Dict[str, CompProvider] = {k.lower(): v for k, v in (providers or {}).items()}
        self.policy = policy or RetryPolicy.from_config()
        self.sleep = sleep
        self.async_sleep = async_sleep
        self._cfg = cfg or config

    def provider(self, tag: str) -> CompProvider:
        t = (tag or "").strip().lower()
        if t in self._providers:
            return self._providers[t]
        if t not in PROVIDER_TAGS:
            raise UnknownProviderError(f"Unknown comp provider '{tag}'. Expected one of {PROVIDER_TAGS}.")
        p = make_provider(t, self._cfg)
        self._providers[t] = p
        return p

    # -----------------------------------------------------------------
    # shared steps
    # -----------------------------------------------------------------
    def _cached(self, query: CompQuery, force_refresh: bool) -> Optional[CompResolution]:
        if force_refresh:
            return None
        hit = self.cache.get(key_for(query))
        if hit is None:
            return None
        return CompResolution(comps=normalize_comps(hit), source="cache")

    def _timeout(self) -> float:
        return self.policy.timeout_s if self.policy.timeout_s is not None else self._cfg.PROVIDER_TIMEOUT_S

    def _finish(self, query: CompQuery, tag: str, raw) -> CompResolution:
        comps = normalize_comps(parse_provider_response(raw))
        log_event(logger, "comps_resolved", provider=tag, count=len(comps), address=query.full_address)
        if comps:
            key = key_for(query)
            self.cache.put(key, comps, source_key=key)
        return CompResolution(comps=comps, source="provider", provider=tag)

    def _degraded(self, query: CompQuery, tag: str, err: RetryExhaustedError) -> CompResolution:
        log_event(
            logger, "comps_resolution_failed", logging.WARNING,
            provider=tag, attempts=err.attempts, error=repr(err.last_error), address=query.full_address,
        )
        return CompResolution(
            comps=[],
            notice=f"Comp data unavailable from {tag}: {err.last_error}. {FALLBACK_NOTICE}",
            source="none",
            provider=tag,
        )

    # -----------------------------------------------------------------
    # public
    # -----------------------------------------------------------------
    def resolve(self, query: CompQuery, provider: str, force_refresh: bool = False) -> CompResolution:
        """
        Cache first (unless ``force_refresh``), then the provider behind the
        retry policy. Exhausted retries degrade to an empty list plus a
        notice. Unknown tags and missing credentials raise.
        """
        p = self.provider(provider)

        cached = self._cached(query, force_refresh)
        if cached is not None:
            return cached

        timeout_s = self._timeout()
        try:
            raw = retry_with_backoff(
                lambda: p.fetch(query, timeout_s),
                self.policy,
                retry_on=(ProviderError,),
                sleep=self.sleep,
                label=f"comps:{p.name}",
            )
        except RetryExhaustedError as e:
            return self._degraded(query, p.name, e)

        return self._finish(query, p.name, raw)

    async def aresolve(self, query: CompQuery, provider: str, force_refresh: bool = False) -> CompResolution:
        """Same contract as ``resolve``; each attempt is bounded by the policy timeout."""
        p = self.provider(provider)

        cached = self._cached(query, force_refresh)
        if cached is not None:
            return cached

        timeout_s = self._timeout()
        try:
            raw = await aretry_with_backoff(
                lambda: p.fetch(query, timeout_s),
                self.policy,
                retry_on=(ProviderError,),
                sleep=self.async_sleep,
                label=f"comps:{p.name}",
            )
        except RetryExhaustedError as e:
            return self._degraded(query, p.name, e)

        return self._finish(query, p.name, raw)
