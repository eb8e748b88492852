"""
Market and metadata enrichment.

Both lookups are best-effort: they return None / a placeholder instead of
raising, and each request carries its own short timeout.
"""
from __future__ import annotations

import logging
from typing import Any, List, Optional

import httpx

from alphascan.schemas import MarketInfo, TokenMeta

log = logging.getLogger(__name__)


def _num(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _pick_pair(pairs: List[dict]) -> dict:
    for pair in pairs:
        if pair.get("chainId") == "solana":
            return pair
    return pairs[0]


def placeholder_meta(address: str) -> TokenMeta:
    return TokenMeta(
        symbol=f"TOKEN{address[-4:].upper()}",
        name=f"Token {address[:4]}...{address[-4:]}",
        decimals=9,
        metadata_synthetic=True,
    )


class MarketEnricher:
    def __init__(
        self,
        client: httpx.AsyncClient,
        dexscreener_base_url: str = "https://api.dexscreener.com/latest/dex",
        meta_urls: Optional[List[str]] = None,
        timeout: float = 5.0,
        meta_timeout: float = 3.0,
    ):
        self.client = client
        self.base_url = dexscreener_base_url.rstrip("/")
        self.meta_urls = list(meta_urls or [])
        self.timeout = timeout
        self.meta_timeout = meta_timeout

    async def _get_json(self, url: str, timeout: float) -> Optional[Any]:
        r = await self.client.get(url, timeout=timeout)
        r.raise_for_status()
        return r.json()

    async def market_data(self, address: str) -> Optional[MarketInfo]:
        try:
            data = await self._get_json(f"{self.base_url}/tokens/{address}", self.timeout)
        except Exception as e:
            log.error("DexScreener API error for %s: %s", address, e)
            return None

        pairs = (data or {}).get("pairs") or []
        if not pairs:
            return None
        pair = _pick_pair(pairs)
        return MarketInfo(
            price=_num(pair.get("priceUsd")),
            volume24h=_num((pair.get("volume") or {}).get("h24")),
            market_cap=_num(pair.get("fdv")),
            liquidity=_num((pair.get("liquidity") or {}).get("usd")),
            price_change24h=_num((pair.get("priceChange") or {}).get("h24")),
            dex_url=pair.get("url"),
            pair_address=pair.get("pairAddress"),
            dex_id=pair.get("dexId"),
            verified=bool((pair.get("info") or {}).get("verified", False)),
        )

    async def token_metadata(self, address: str) -> TokenMeta:
        for template in self.meta_urls:
            url = template.format(address=address)
            try:
                data = await self._get_json(url, self.meta_timeout)
            except Exception as e:
                log.debug("Metadata source %s failed for %s: %s", url, address, e)
                continue
            if isinstance(data, dict) and isinstance(data.get("data"), dict):
                data = data["data"]
            if not isinstance(data, dict) or not (data.get("symbol") or data.get("name")):
                continue

            fallback = placeholder_meta(address)
            holder = data.get("holder")
            return TokenMeta(
                symbol=data.get("symbol") or fallback.symbol,
                name=data.get("name") or fallback.name,
                decimals=int(_num(data.get("decimals")) or 9),
                supply=str(data["supply"]) if data.get("supply") is not None else None,
                holder=int(_num(holder)) if holder is not None else None,
            )

        return placeholder_meta(address)
