"""
==============================================================================
Health Check Endpoints
==============================================================================

System health status endpoints for monitoring and orchestration.

==============================================================================
"""

import numpy as np
from fastapi import APIRouter, Depends

from phonescan.scanner.decoder import DecodeMode, QRDecoder, RasterFrame
from phonescan.session.manager import SessionManager, get_session_manager


router = APIRouter(prefix="/health", tags=["Health"])


class HealthController:
    """Controller for health check operations."""

    def __init__(self, manager: SessionManager):
        self._manager = manager

    def check_decoder(self) -> str:
        """Run the decoder on a blank frame to confirm the zbar library works."""
        try:
            blank = RasterFrame.from_array(np.full((64, 64), 255, dtype=np.uint8))
            QRDecoder().decode(blank, DecodeMode.STRICT_BEST)
            return "healthy"
        except Exception:
            return "unhealthy"

    def get_health(self) -> dict:
        """Get full health status."""
        decoder_status = self.check_decoder()

        overall = "healthy" if decoder_status == "healthy" else "degraded"

        return {
            "status": overall,
            "components": {
                "api": "healthy",
                "decoder": decoder_status,
            },
            "details": {
                "active_sessions": len(self._manager)
            }
        }


@router.get("")
async def health_check(manager: SessionManager = Depends(get_session_manager)):
    """
    Health check endpoint.

    Returns system status including API and decoder.
    """
    controller = HealthController(manager)
    return controller.get_health()


@router.get("/ready")
async def readiness_check():
    """Readiness probe for container orchestration."""
    return {"ready": True}


@router.get("/live")
async def liveness_check():
    """Liveness probe for container orchestration."""
    return {"alive": True}
