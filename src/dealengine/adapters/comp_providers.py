# src/dealengine/adapters/comp_providers.py
"""
Comparable-sales providers.

Each provider performs one HTTP call and wraps the decoded body in its own
response type. Parsing those bodies into CompRecords is separate
(``parse_provider_response``) and never raises: anything malformed yields
zero comps. Transport failures raise ProviderError so the caller can retry.
"""
from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

import requests

from dealengine.adapters.config import AppConfig, config
from dealengine.adapters.logging_utils import get_logger, log_event
from dealengine.domain.comps import CompQuery, CompRecord

logger = get_logger(__name__)


class CompProviderError(RuntimeError):
    pass


class ProviderError(CompProviderError):
    """Transient: HTTP error status, network failure or timeout. Retried."""


class ProviderConfigError(CompProviderError):
    """Missing or invalid credentials. Not retried."""


class UnknownProviderError(CompProviderError, ValueError):
    pass


# =====================================================================
# Response types (one per provider)
# =====================================================================


@dataclass(frozen=True)
class BridgeResponse:
    payload: Any


@dataclass(frozen=True)
class OpenAIResponse:
    payload: Any


@dataclass(frozen=True)
class GeminiResponse:
    payload: Any


ProviderResponse = Union[BridgeResponse, OpenAIResponse, GeminiResponse]


_FENCE_RE = re.compile(r"^\s*```(?:json|JSON)?\s*|\s*```\s*$")


def strip_code_fences(text: str) -> str:
    """LLMs like to wrap JSON in ```json ... ``` even when told not to."""
    return _FENCE_RE.sub("", text).strip()


def _dig(obj: Any, *path: Union[str, int]) -> Any:
    cur = obj
    for step in path:
        if isinstance(step, int):
            if not isinstance(cur, list) or len(cur) <= step:
                return None
            cur = cur[step]
        else:
            if not isinstance(cur, dict):
                return None
            cur = cur.get(step)
    return cur


def _json_array(text: Any) -> List[Any]:
    if not isinstance(text, str) or not text.strip():
        return []
    try:
        data = json.loads(strip_code_fences(text))
    except ValueError:
        return []
    return data if isinstance(data, list) else []


def _first(d: Dict[str, Any], *keys: str) -> Any:
    for k in keys:
        v = d.get(k)
        if v not in (None, ""):
            return v
    return None


def _bridge_item(item: Dict[str, Any]) -> Dict[str, Any]:
    addr = item.get("address")
    if isinstance(addr, dict):
        addr = _first(addr, "full", "streetAddress", "line1")
    return {
        "address": addr or _first(item, "UnparsedAddress", "fullAddress"),
        "price": _first(item, "price", "zestimate", "ClosePrice", "lastSoldPrice"),
        "sqft": _first(item, "sqft", "livingArea", "LivingArea", "finishedSqFt"),
        "beds": _first(item, "beds", "bedrooms", "BedroomsTotal"),
        "baths": _first(item, "baths", "bathrooms", "BathroomsTotalInteger"),
        "property_type": _first(item, "propertyType", "property_type", "PropertyType"),
        "sale_date": _first(item, "saleDate", "sale_date", "lastSoldDate", "CloseDate"),
        "condition": item.get("condition"),
        "latitude": _first(item, "latitude", "lat", "Latitude"),
        "longitude": _first(item, "longitude", "lng", "lon", "Longitude"),
    }


def _llm_item(item: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "address": item.get("address"),
        "price": item.get("price"),
        "sqft": item.get("sqft"),
        "beds": item.get("beds"),
        "baths": item.get("baths"),
        "property_type": _first(item, "propertyType", "property_type"),
        "sale_date": _first(item, "saleDate", "sale_date"),
        "condition": _first(item, "condition", "notes"),
        "latitude": item.get("latitude"),
        "longitude": item.get("longitude"),
    }


def parse_provider_response(resp: ProviderResponse) -> List[CompRecord]:
    """Map any provider body to CompRecords. Malformed input gives []."""
    if isinstance(resp, BridgeResponse):
        items = _dig(resp.payload, "properties")
        source, mapper = "bridge", _bridge_item
    elif isinstance(resp, OpenAIResponse):
        items = _json_array(_dig(resp.payload, "choices", 0, "message", "content"))
        source, mapper = "openai", _llm_item
    elif isinstance(resp, GeminiResponse):
        items = _json_array(_dig(resp.payload, "candidates", 0, "content", "parts", 0, "text"))
        source, mapper = "gemini", _llm_item
    else:
        raise TypeError(f"not a provider response: {type(resp).__name__}")

    if not isinstance(items, list):
        log_event(logger, "comps_response_malformed", source=source)
        return []

    out: List[CompRecord] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        out.append(CompRecord(**mapper(item), data_source=source))
    return out


# =====================================================================
# Providers
# =====================================================================


class _HttpProvider:
    name = "base"

    def __init__(self, api_key: Optional[str], base_url: str, session: Optional[requests.Session] = None) -> None:
        self.api_key = (api_key or "").strip()
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()

    def _require_key(self) -> str:
        if not self.api_key:
            raise ProviderConfigError(
                f"Missing API key for comp provider '{self.name}'. "
                f"Set DEALENGINE_{self.name.upper()}_API_KEY."
            )
        return self.api_key

    def _send(self, method: str, url: str, timeout_s: float, **kwargs: Any) -> Any:
        try:
            resp = self.session.request(method, url, timeout=timeout_s, **kwargs)
        except requests.RequestException as e:
            raise ProviderError(f"{self.name} request failed: {e!r}") from e

        if resp.status_code >= 400:
            raise ProviderError(f"{self.name} HTTP {resp.status_code}: {resp.text[:200]}")

        try:
            return resp.json()
        except ValueError:
            # a 200 with a non-JSON body is a malformed response, not an outage
            return None


class BridgeProvider(_HttpProvider):
    name = "bridge"

    def fetch(self, query: CompQuery, timeout_s: float) -> BridgeResponse:
        key = self._require_key()
        body = self._send(
            "GET",
            f"{self.base_url}/api/v2/zestimates",
            timeout_s,
            params={
                "address": query.address,
                "city": query.city,
                "state": query.state,
                "postalcode": query.zipcode,
            },
            headers={"Authorization": f"Bearer {key}", "Accept": "application/json"},
        )
        return BridgeResponse(body)


def _comps_prompt(query: CompQuery) -> str:
    return (
        f"Generate 3 comparable recently sold homes near {query.full_address}. "
        "Return a valid JSON array only, like: "
        '[{"address":"123 Main St","price":825000,"sqft":1600,"beds":3,"baths":2}]. '
        "Do NOT include markdown or explanations."
    )


class OpenAIProvider(_HttpProvider):
    name = "openai"

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str,
        model: str = "gpt-4o-mini",
        session: Optional[requests.Session] = None,
    ) -> None:
        super().__init__(api_key, base_url, session)
        self.model = model

    def fetch(self, query: CompQuery, timeout_s: float) -> OpenAIResponse:
        key = self._require_key()
        body = self._send(
            "POST",
            f"{self.base_url}/chat/completions",
            timeout_s,
            json={
                "model": self.model,
                "messages": [{"role": "user", "content": _comps_prompt(query)}],
                "temperature": 0.3,
            },
            headers={"Authorization": f"Bearer {key}", "Content-Type": "application/json"},
        )
        return OpenAIResponse(body)


class GeminiProvider(_HttpProvider):
    name = "gemini"

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str,
        model: str = "gemini-1.5-flash",
        session: Optional[requests.Session] = None,
    ) -> None:
        super().__init__(api_key, base_url, session)
        self.model = model

    def fetch(self, query: CompQuery, timeout_s: float) -> GeminiResponse:
        key = self._require_key()
        body = self._send(
            "POST",
            f"{self.base_url}/models/{self.model}:generateContent",
            timeout_s,
            params={"key": key},
            json={"contents": [{"parts": [{"text": _comps_prompt(query)}]}]},
            headers={"Content-Type": "application/json"},
        )
        return GeminiResponse(body)


PROVIDER_TAGS = ("bridge", "openai", "gemini")


def make_provider(
    tag: str,
    cfg: AppConfig | None = None,
    session: Optional[requests.Session] = None,
) -> Union[BridgeProvider, OpenAIProvider, GeminiProvider]:
    c = cfg or config
    t = (tag or "").strip().lower()
    if t == "bridge":
        return BridgeProvider(c.BRIDGE_API_KEY, c.BRIDGE_BASE_URL, session=session)
    if t == "openai":
        return OpenAIProvider(c.OPENAI_API_KEY, c.OPENAI_BASE_URL, c.OPENAI_MODEL, session=session)
    if t == "gemini":
        return GeminiProvider(c.GEMINI_API_KEY, c.GEMINI_BASE_URL, c.GEMINI_MODEL, session=session)
    raise UnknownProviderError(f"Unknown comp provider '{tag}'. Expected one of {PROVIDER_TAGS}.")
