"""FastAPI application exposing the collector, stored results and on-demand scans."""

from __future__ import annotations

import asyncio
import logging
from contextlib import suppress
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from zerodte.models import serialize_model, serialize_models
from zerodte.services import Services, build_services
from zerodte.storage import StorageError

logger = logging.getLogger(__name__)


class StartRequest(BaseModel):
    symbols: Optional[List[str]] = None
    interval_ms: Optional[int] = Field(default=None, gt=0)


class OutcomeRequest(BaseModel):
    outcome: str
    profit_loss: float


class PnLRequest(BaseModel):
    trading_date: Optional[date] = None
    symbols: Optional[List[str]] = None


def _ok(data: Any, **extra: Any) -> Dict[str, Any]:
    return {"success": True, "data": data, **extra}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _services(request: Request) -> Services:
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise HTTPException(status_code=503, detail="Services are not initialised")
    return services


def create_app(services: Optional[Services] = None) -> FastAPI:
    """Build the app; ``services`` is constructed from settings on startup when omitted."""

    app = FastAPI(title="0DTE Options Flow API", version="1.0.0")
    app.state.services = services

    @app.on_event("startup")
    async def on_startup() -> None:
        logger.info("Starting 0DTE API")
        if app.state.services is None:
            app.state.services = build_services()

    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        logger.info("Shutting down 0DTE API")
        current: Optional[Services] = app.state.services
        if current is None:
            return
        current.collector.stop()
        with suppress(asyncio.CancelledError):
            await current.collector.join()
        current.close()

    @app.exception_handler(StorageError)
    async def storage_error_handler(request: Request, exc: StorageError):
        logger.warning("Storage error serving %s: %s", request.url.path, exc)
        return JSONResponse(status_code=502, content={"success": False, "error": str(exc)})

    @app.get("/status")
    async def status(request: Request) -> Dict[str, Any]:
        return _ok(_services(request).collector.status().to_dict())

    @app.post("/start")
    async def start(request: Request, payload: Optional[StartRequest] = None) -> Dict[str, Any]:
        collector = _services(request).collector
        payload = payload or StartRequest()
        try:
            started = collector.start(symbols=payload.symbols, interval_ms=payload.interval_ms)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        message = "Collector started" if started else "Collector already running"
        return _ok(collector.status().to_dict(), started=started, message=message)

    @app.post("/stop")
    async def stop(request: Request) -> Dict[str, Any]:
        collector = _services(request).collector
        stopped = collector.stop()
        message = "Collector stopped" if stopped else "Collector already stopped"
        return _ok(collector.status().to_dict(), stopped=stopped, message=message)

    @app.get("/naked-positions")
    async def naked_positions(request: Request, symbol: Optional[str] = None, hours: float = 24) -> Dict[str, Any]:
        storage = _services(request).storage
        since = _utcnow() - timedelta(hours=hours)
        events = await asyncio.to_thread(storage.get_naked_positions, symbol.upper() if symbol else None, since)
        return _ok(serialize_models(events), count=len(events))

    @app.get("/credit-spreads")
    async def credit_spreads(request: Request, symbol: Optional[str] = None, limit: int = 10) -> Dict[str, Any]:
        storage = _services(request).storage
        start = _utcnow().replace(hour=0, minute=0, second=0, microsecond=0)
        spreads = await asyncio.to_thread(
            storage.get_credit_spreads, symbol.upper() if symbol else None, start, None, limit
        )
        return _ok(serialize_models(spreads), count=len(spreads))

    @app.get("/signals")
    async def signals(request: Request, symbol: Optional[str] = None) -> Dict[str, Any]:
        storage = _services(request).storage
        now = _utcnow()
        active = await asyncio.to_thread(
            storage.get_trade_signals,
            symbol.upper() if symbol else None,
            now - timedelta(days=1),
            None,
            True,
            now,
        )
        return _ok(serialize_models(active), count=len(active))

    @app.get("/pnl")
    async def pnl(request: Request, trading_date: Optional[date] = None) -> Dict[str, Any]:
        storage = _services(request).storage
        rows = await asyncio.to_thread(storage.get_daily_pnl, trading_date or _utcnow().date())
        total = round(sum(row.net_pnl for row in rows), 2)
        return _ok(serialize_models(rows), total_pnl=total)

    @app.post("/pnl/calculate")
    async def calculate_pnl(request: Request, payload: Optional[PnLRequest] = None) -> Dict[str, Any]:
        calculator = _services(request).pnl
        payload = payload or PnLRequest()
        rows = await asyncio.to_thread(calculator.calculate, payload.trading_date, payload.symbols)
        return _ok(serialize_models(rows), count=len(rows))

    @app.post("/signals/{signal_id}/outcome")
    async def record_outcome(request: Request, signal_id: int, payload: OutcomeRequest) -> Dict[str, Any]:
        calculator = _services(request).pnl
        try:
            updated = await asyncio.to_thread(
                calculator.record_outcome, signal_id, payload.outcome, payload.profit_loss
            )
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        if updated is None:
            raise HTTPException(status_code=404, detail=f"Trade signal {signal_id} not found")
        return _ok(serialize_model(updated))

    @app.post("/spreads/{symbol}")
    async def analyze_spreads(request: Request, symbol: str, fresh: bool = False) -> Dict[str, Any]:
        scanner = _services(request).scanner
        chain = await asyncio.to_thread(scanner.load_chain, symbol, fresh)
        if chain is None:
            raise HTTPException(status_code=404, detail=f"No chain available for {symbol.upper()}")
        results = await asyncio.to_thread(scanner.find_best_spreads, chain)
        return _ok(serialize_models(results), count=len(results), underlying_price=chain.underlying_price)

    @app.post("/atm/{symbol}")
    async def analyze_atm(request: Request, symbol: str, fresh: bool = False) -> Dict[str, Any]:
        scanner = _services(request).scanner
        chain = await asyncio.to_thread(scanner.load_chain, symbol, fresh)
        if chain is None:
            raise HTTPException(status_code=404, detail=f"No chain available for {symbol.upper()}")
        results = await asyncio.to_thread(scanner.find_atm_signals, chain)
        return _ok(serialize_models(results), count=len(results), underlying_price=chain.underlying_price)

    @app.get("/dashboard")
    async def dashboard(request: Request) -> Dict[str, Any]:
        storage = _services(request).storage
        now = _utcnow()
        day_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
        naked = await asyncio.to_thread(storage.get_naked_positions, None, now - timedelta(days=1))
        spreads = await asyncio.to_thread(storage.get_credit_spreads, None, day_start, None, 5)
        active = await asyncio.to_thread(storage.get_trade_signals, None, now - timedelta(days=1), None, True, now)
        pnl_rows = await asyncio.to_thread(storage.get_daily_pnl, now.date())
        return _ok(
            {
                "naked_positions": {"count": len(naked), "positions": serialize_models(naked[:10])},
                "credit_spreads": {"count": len(spreads), "top": serialize_models(spreads)},
                "signals": {"count": len(active), "active": serialize_models(active)},
                "pnl": {
                    "summary": serialize_models(pnl_rows),
                    "total_pnl": round(sum(row.net_pnl for row in pnl_rows), 2),
                },
                "collector": _services(request).collector.status().to_dict(),
                "timestamp": now.isoformat(),
            }
        )

    @app.post("/cleanup")
    async def cleanup(request: Request) -> Dict[str, Any]:
        services = _services(request)
        deleted = await asyncio.to_thread(
            services.storage.cleanup, services.settings.storage.retention_days
        )
        return _ok({"deleted": deleted})

    return app


app = create_app()


__all__ = ["app", "create_app"]
