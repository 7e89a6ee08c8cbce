"""Field network service.

Runs the access point reconciliation worker and exposes a small HTTP API
for the field management system:
- Submit team WiFi assignments (queued, applied in the background)
- Configure team Ethernet (applied synchronously)
- Read back the observed WiFi status
- Health and Prometheus metrics
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import APIRouter, FastAPI, HTTPException, Request, Response

from fieldnet.config import settings
from fieldnet.logging_config import setup_logging
from fieldnet.metrics import get_metrics
from fieldnet.network.access_point import AccessPoint, ConfigBufferFullError
from fieldnet.network.assignment import SLOTS
from fieldnet.network.controller import DeviceControllerError
from fieldnet.network.switch import Switch
from fieldnet.network.unifi import UnifiClient
from fieldnet.schemas import (
    AcceptedResponse,
    EthernetTeamsRequest,
    SlotStatus,
    WifiStatusResponse,
    WifiTeamsRequest,
)
from fieldnet.version import __version__, get_commit

logger = logging.getLogger(__name__)

router = APIRouter()


def _access_point(request: Request) -> AccessPoint:
    return request.app.state.access_point


def _switch(request: Request) -> Switch:
    return request.app.state.switch


# --- Health Endpoints ---

@router.get("/health")
def health(request: Request):
    """Basic health check."""
    access_point = _access_point(request)
    return {
        "status": "ok",
        "version": __version__,
        "commit": get_commit(),
        "wifi_status_initialized": access_point.initialized,
        "wifi_state": access_point.state.value,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/metrics")
def metrics():
    """Prometheus metrics endpoint."""
    content, content_type = get_metrics()
    return Response(content=content, media_type=content_type)


# --- WiFi Endpoints ---

@router.get("/wifi/status", response_model=WifiStatusResponse)
def wifi_status(request: Request) -> WifiStatusResponse:
    """Last status read from the access point."""
    access_point = _access_point(request)
    return WifiStatusResponse(
        initialized=access_point.initialized,
        slots=[
            SlotStatus(slot=slot.value, team_id=status.team_id, radio_linked=status.radio_linked)
            for slot, status in zip(SLOTS, access_point.team_wifi_statuses)
        ],
    )


@router.post("/wifi/teams", status_code=202, response_model=AcceptedResponse)
async def configure_team_wifi(body: WifiTeamsRequest, request: Request) -> AcceptedResponse:
    """Queue a team WiFi assignment; the worker applies it in the background."""
    try:
        _access_point(request).configure_team_wifi(body.teams)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except ConfigBufferFullError as e:
        logger.warning(f"Rejected WiFi configuration request: {e}")
        raise HTTPException(status_code=503, detail=str(e))
    return AcceptedResponse(detail="WiFi configuration queued")


# --- Ethernet Endpoints ---

@router.post("/ethernet/teams", response_model=AcceptedResponse)
async def configure_team_ethernet(body: EthernetTeamsRequest, request: Request) -> AcceptedResponse:
    """Configure wired team networks and wait for the controller to accept them."""
    try:
        await _switch(request).configure_team_ethernet(body.teams)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except DeviceControllerError as e:
        logger.error(f"Ethernet configuration failed: {e}")
        # A busy controller is worth retrying; anything else is a bad gateway.
        raise HTTPException(status_code=503 if e.transient else 502, detail=e.message)
    return AcceptedResponse(detail="Ethernet configured")


def create_app(
    access_point: AccessPoint | None = None,
    switch: Switch | None = None,
) -> FastAPI:
    """Build the service, wiring a UniFi controller for anything not passed in."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Start the access point worker on startup, stop it on shutdown."""
        controller: UnifiClient | None = None
        if access_point is None or switch is None:
            controller = UnifiClient.from_settings()
            logger.info(f"Controller: {controller.address}")

        app.state.access_point = access_point or AccessPoint(controller, name=settings.unifi_address)
        app.state.switch = switch or Switch(controller)

        await app.state.access_point.start()
        yield

        await app.state.access_point.stop()
        if controller is not None:
            await controller.aclose()
        logger.info("Field network service shutting down")

    app = FastAPI(title="Field Network", version=__version__, lifespan=lifespan)
    app.include_router(router)
    return app


app = create_app()


def main() -> None:
    import uvicorn

    setup_logging(device_name=settings.unifi_address)
    uvicorn.run(
        "fieldnet.main:app",
        host=settings.service_host,
        port=settings.service_port,
        reload=False,
        log_config=None,  # keep the handlers installed by setup_logging
    )


if __name__ == "__main__":
    main()
