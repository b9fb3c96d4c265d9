from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from contextlib import asynccontextmanager, suppress
from typing import Any, Optional

from fastapi import FastAPI, HTTPException, Request

from band_watch.engine.monitor import BandMonitor
from band_watch.market import MarketDataError
from band_watch.runtime import build_client, build_monitor, build_runtime_notifier, resolve_options
from band_watch.settings import Settings

logger = logging.getLogger("band_watch.web")

Closer = Callable[[], Awaitable[None]]


class MonitorService:
    """Owns a monitor and its polling task for the lifetime of the API."""

    def __init__(self, monitor: BandMonitor, *, closers: Sequence[Closer] = ()) -> None:
        self.monitor = monitor
        self.startup_error: Optional[str] = None
        self._closers = list(closers)
        self._task: Optional[asyncio.Task[None]] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        try:
            await self.monitor.start()
        except MarketDataError as e:
            self.startup_error = f"{type(e).__name__}: {e}"
            logger.exception("startup_failed")
            return
        self.startup_error = None
        self._task = asyncio.create_task(self.monitor.poll_forever())

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            with suppress(asyncio.CancelledError):
                await self._task
            self._task = None
        self.monitor.close()

    async def restart(self) -> None:
        await self.stop()
        await self.start()

    async def aclose(self) -> None:
        await self.stop()
        for closer in self._closers:
            await closer()


def build_service(settings: Settings) -> MonitorService:
    options = resolve_options(settings)
    client = build_client(settings, options)
    notifier = build_runtime_notifier(settings, options)
    monitor = build_monitor(options=options, client=client, notifier=notifier)
    return MonitorService(monitor, closers=[notifier.aclose, client.aclose])


def _service(request: Request) -> MonitorService:
    return request.app.state.service


def _require_started(service: MonitorService) -> None:
    if service.startup_error is not None:
        raise HTTPException(status_code=503, detail=service.startup_error)
    if not service.monitor.state.started:
        raise HTTPException(status_code=503, detail="monitor not started")


def create_app(service_factory: Optional[Callable[[], MonitorService]] = None) -> FastAPI:
    factory = service_factory or (lambda: build_service(Settings()))

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        service = factory()
        app.state.service = service
        await service.start()
        logger.info("api_started")
        try:
            yield
        finally:
            await service.aclose()
            logger.info("api_stopped")

    app = FastAPI(title="band-watch", lifespan=lifespan)

    @app.get("/api/status")
    async def status(request: Request) -> dict[str, Any]:
        service = _service(request)
        _require_started(service)
        return {"polling": service.running, **service.monitor.snapshot()}

    @app.get("/api/alerts")
    async def alerts(request: Request) -> list[dict[str, str]]:
        service = _service(request)
        return [{"message": r.message, "time": r.time} for r in service.monitor.evaluator.alerts]

    @app.post("/api/poll")
    async def poll(request: Request) -> dict[str, Any]:
        service = _service(request)
        _require_started(service)
        alert = await service.monitor.poll_once()
        return {
            "alert": alert.record.message if alert is not None else None,
            **service.monitor.snapshot(),
        }

    @app.post("/api/notifications/test")
    async def test_notification(request: Request) -> dict[str, Any]:
        service = _service(request)
        notifier = service.monitor.notifier
        if not await service.monitor.send_test_notification():
            raise HTTPException(
                status_code=409,
                detail=f"notifications not granted (permission={notifier.permission()})",
            )
        return {"ok": True, "channel": notifier.channel}

    @app.post("/api/reload")
    async def reload(request: Request) -> dict[str, Any]:
        service = _service(request)
        await service.restart()
        _require_started(service)
        return {"polling": service.running, **service.monitor.snapshot()}

    return app
