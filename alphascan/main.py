from __future__ import annotations

import json
import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Awaitable, Callable, List, Optional

import httpx
import uvicorn
from fastapi import FastAPI, HTTPException, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from alphascan.config import Settings
from alphascan.schemas import (
    ContractDetail,
    ContractDetailData,
    ContractStats,
    HunterInfo,
    ScanMeta,
    ScanResponse,
    StatusData,
)
from alphascan.services import chain, twitter
from alphascan.services.cache import ResultCache
from alphascan.services.extractor import is_valid_address
from alphascan.services.fanout import CONTRACTS_UPDATE, REQUEST_SCAN, SCAN_STATUS, Broadcaster
from alphascan.services.market import MarketEnricher
from alphascan.services.scanner import Scanner
from alphascan.services.scheduler import Scheduler

log = logging.getLogger(__name__)

AVAILABLE_ENDPOINTS = [
    "GET /api/scan",
    "GET /api/contract/:address",
    "GET /api/health",
    "GET /api/hunters",
    "GET /api/status",
    "POST /api/scan/trigger",
    "WS /ws",
]


@dataclass
class Services:
    settings: Settings
    reader: twitter.SourceReader
    inspector: chain.ChainInspector
    enricher: MarketEnricher
    cache: ResultCache
    broadcaster: Broadcaster
    scanner: Scanner
    started_at: float = field(default_factory=time.monotonic)
    closers: List[Callable[[], Awaitable[None]]] = field(default_factory=list)

    async def aclose(self) -> None:
        for close in self.closers:
            try:
                await close()
            except Exception as e:
                log.warning("Error closing client: %s", e)


def build_services(settings: Settings) -> Services:
    http = httpx.AsyncClient(headers={"Accept": "application/json"})
    rpc = chain.build_client(settings.solana_rpc_url, settings.chain_timeout)

    reader = twitter.SourceReader(twitter.build_client(settings.twitter_bearer_token), settings.alpha_hunters)
    inspector = chain.ChainInspector(rpc, settings.signature_limit)
    enricher = MarketEnricher(
        http,
        settings.dexscreener_base_url,
        settings.token_meta_urls,
        timeout=settings.http_timeout,
        meta_timeout=settings.meta_timeout,
    )
    cache = ResultCache()
    broadcaster = Broadcaster()
    scanner = Scanner(
        reader,
        inspector,
        enricher,
        cache,
        broadcaster,
        top_hunters=settings.top_hunters,
        max_posts=settings.max_posts_per_source,
        source_delay=settings.source_delay,
        address_delay=settings.address_delay,
    )
    return Services(
        settings=settings,
        reader=reader,
        inspector=inspector,
        enricher=enricher,
        cache=cache,
        broadcaster=broadcaster,
        scanner=scanner,
        closers=[http.aclose, rpc.close],
    )


def _error(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message, **extra})


def create_app(services: Optional[Services] = None, schedule: bool = True) -> FastAPI:
    settings = services.settings if services else Settings.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        state = app.state.services = services or build_services(settings)
        scheduler = None
        if schedule:
            scheduler = Scheduler(state.scanner.trigger, settings.scan_interval_minutes, settings.startup_scan_delay)
            scheduler.start()
        log.info("Monitoring %d alpha hunters", len(state.reader.hunters()))
        log.info("Twitter API: %s", "configured" if state.reader.configured else "missing")
        log.info("Solana RPC: %s", settings.solana_rpc_url)
        log.info("Auto-scan every %d minutes", settings.scan_interval_minutes)
        try:
            yield
        finally:
            if scheduler:
                await scheduler.stop()
            await state.scanner.stop()
            await state.aclose()

    app = FastAPI(title="Solana Alpha Hunter", version="0.3", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404 and exc.detail == "Not Found":
            return _error(404, "Endpoint not found", availableEndpoints=AVAILABLE_ENDPOINTS)
        return _error(exc.status_code, str(exc.detail))

    @app.exception_handler(Exception)
    async def server_error(request: Request, exc: Exception):
        log.error("Server error: %s", exc)
        return _error(500, "Internal server error", message=str(exc) if settings.debug else "Something went wrong")

    def svc(request: Request) -> Services:
        return request.app.state.services

    @app.get("/api/scan")
    async def scan(request: Request):
        s = svc(request)
        if s.cache.empty and not s.cache.scan_in_progress:
            s.scanner.trigger()
        snap = s.cache.snapshot
        return ScanResponse(
            data=list(snap.contracts),
            meta=ScanMeta(
                total=len(snap.contracts),
                last_update=snap.last_update,
                scan_in_progress=s.cache.scan_in_progress,
                stats=snap.stats,
            ),
        ).model_dump(by_alias=True, mode="json")

    @app.get("/api/contract/{address}")
    async def contract(address: str, request: Request):
        s = svc(request)
        if not is_valid_address(address):
            raise HTTPException(status_code=400, detail="Invalid Solana address")

        info = await s.inspector.inspect(address)
        if info is None:
            raise HTTPException(status_code=404, detail="Contract not found")

        market = await s.enricher.market_data(address)
        meta = await s.enricher.token_metadata(address)
        tweets = await s.reader.search_mentions(address)

        data = ContractDetailData(
            contract=ContractDetail(chain=info, cached=s.cache.find(address), dex_data=market, token=meta),
            tweets=tweets,
            stats=ContractStats(
                total_mentions=len(tweets),
                total_engagement=sum(t.engagement for t in tweets),
                unique_users=len({t.username for t in tweets}),
            ),
        )
        return {"success": True, "data": data.model_dump(by_alias=True, mode="json")}

    @app.get("/api/status")
    def status(request: Request):
        s = svc(request)
        data = StatusData(
            scan_in_progress=s.cache.scan_in_progress,
            last_scan_time=s.cache.snapshot.last_update,
            cached_contracts=len(s.cache.snapshot.contracts),
            connected_clients=s.broadcaster.client_count,
            monitored_hunters=len(s.reader.hunters()),
        )
        return {"success": True, "data": data.model_dump(by_alias=True, mode="json")}

    @app.post("/api/scan/trigger")
    async def trigger(request: Request):
        if not svc(request).scanner.trigger():
            return _error(429, "Scan already in progress")
        return {"success": True, "message": "Scan started", "estimatedDuration": "2-3 minutes"}

    @app.get("/api/hunters")
    def hunters(request: Request):
        data = [
            HunterInfo(username=h.username, url=f"https://twitter.com/{h.username}", last_tweet_id=h.last_tweet_id)
            for h in svc(request).reader.hunters()
        ]
        return {"success": True, "data": [h.model_dump(by_alias=True) for h in data]}

    @app.get("/api/health")
    def health(request: Request):
        s = svc(request)
        return {
            "success": True,
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "services": {
                "twitter": s.reader.configured,
                "solana": bool(s.settings.solana_rpc_url),
                "websocket": True,
                "cache": not s.cache.empty,
            },
            "stats": {
                "uptime": round(time.monotonic() - s.started_at, 3),
                "connectedClients": s.broadcaster.client_count,
            },
        }

    @app.websocket("/ws")
    async def feed(websocket: WebSocket):
        s: Services = websocket.app.state.services
        await websocket.accept()
        s.broadcaster.subscribe(websocket)
        log.info("Client connected (%d total)", s.broadcaster.client_count)

        snap = s.cache.snapshot
        await s.broadcaster.send(
            websocket,
            CONTRACTS_UPDATE,
            {"contracts": list(snap.contracts), "lastUpdate": snap.last_update, "stats": snap.stats},
        )
        await s.broadcaster.send(
            websocket, SCAN_STATUS, {"inProgress": s.cache.scan_in_progress, "lastScan": snap.last_update}
        )

        try:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    break
                raw = message.get("text")
                if raw is None:
                    continue
                try:
                    event = json.loads(raw).get("event")
                except (ValueError, AttributeError):
                    event = raw.strip()
                if event == REQUEST_SCAN and s.scanner.trigger():
                    log.info("Manual scan requested by client")
        except WebSocketDisconnect:
            pass
        finally:
            s.broadcaster.unsubscribe(websocket)
            log.info("Client disconnected (%d remaining)", s.broadcaster.client_count)

    return app


def run() -> None:
    settings = Settings.from_env()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
        handlers=[logging.StreamHandler()],
    )
    uvicorn.run(create_app(), host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    run()
