from __future__ import annotations

import os
from typing import List

from dotenv import load_dotenv
from pydantic import BaseModel

ALPHA_HUNTERS = [
    "degenspartan",
    "SolBigBrain",
    "0xSisyphus",
    "thedefiedge",
    "DegenTrades",
    "CryptoGodJohn",
    "alphakek_",
    "solana_daily",
    "OnChainWizard",
    "CryptoMillions",
    "SolanaLegend",
    "DegenAlpha",
    "SolanaNews",
    "coin_flipper_",
    "TraderSZ",
    "SolanaFloor",
]

TOP_HUNTERS = ["degenspartan", "SolBigBrain", "0xSisyphus", "thedefiedge"]

TOKEN_META_URLS = [
    "https://api.solscan.io/token/meta?token={address}",
    "https://public-api.solscan.io/token/meta?tokenAddress={address}",
]


def _csv(name: str, default: List[str]) -> List[str]:
    raw = os.getenv(name, "").strip()
    if not raw:
        return list(default)
    return [item.strip() for item in raw.split(",") if item.strip()]


def _float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, default))
    except ValueError:
        return default


def _int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, default))
    except ValueError:
        return default


class Settings(BaseModel):
    twitter_bearer_token: str = ""
    solana_rpc_url: str = "https://api.mainnet-beta.solana.com"
    dexscreener_base_url: str = "https://api.dexscreener.com/latest/dex"
    token_meta_urls: List[str] = TOKEN_META_URLS
    port: int = 3001
    scan_interval_minutes: int = 10
    startup_scan_delay: float = 5.0
    source_delay: float = 1.2
    address_delay: float = 0.3
    max_posts_per_source: int = 20
    signature_limit: int = 1000
    chain_timeout: float = 10.0
    http_timeout: float = 5.0
    meta_timeout: float = 3.0
    alpha_hunters: List[str] = ALPHA_HUNTERS
    top_hunters: List[str] = TOP_HUNTERS
    log_level: str = "INFO"
    debug: bool = False

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from the process environment (and a local .env file)."""
        load_dotenv()
        return cls(
            twitter_bearer_token=os.getenv("TWITTER_BEARER_TOKEN", "").strip(),
            solana_rpc_url=os.getenv("SOLANA_RPC_URL") or cls.model_fields["solana_rpc_url"].default,
            dexscreener_base_url=(os.getenv("DEXSCREENER_BASE_URL") or cls.model_fields["dexscreener_base_url"].default).rstrip("/"),
            token_meta_urls=_csv("TOKEN_META_URLS", TOKEN_META_URLS),
            port=_int("PORT", 3001),
            scan_interval_minutes=max(1, _int("SCAN_INTERVAL_MINUTES", 10)),
            startup_scan_delay=_float("STARTUP_SCAN_DELAY", 5.0),
            source_delay=_float("SOURCE_DELAY", 1.2),
            address_delay=_float("ADDRESS_DELAY", 0.3),
            max_posts_per_source=min(100, max(5, _int("MAX_POSTS_PER_SOURCE", 20))),
            signature_limit=_int("SIGNATURE_LIMIT", 1000),
            chain_timeout=_float("CHAIN_TIMEOUT", 10.0),
            http_timeout=_float("HTTP_TIMEOUT", 5.0),
            meta_timeout=_float("META_TIMEOUT", 3.0),
            alpha_hunters=_csv("ALPHA_HUNTERS", ALPHA_HUNTERS),
            top_hunters=_csv("TOP_HUNTERS", TOP_HUNTERS),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            debug=os.getenv("DEBUG", "").lower() in ("1", "true", "yes"),
        )
