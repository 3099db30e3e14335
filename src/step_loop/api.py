"""FastAPI REST surface for the step-loop route engine."""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from step_loop.core.engine import RouteEngine, build_engine
from step_loop.core.models import RouteResult
from step_loop.errors import InvalidInput, NoRouteFound, TransportFailure

log = logging.getLogger(__name__)

app = FastAPI(title="Step Loop", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Engine singleton (unsafe regions are loaded once, read-only afterwards)
# ---------------------------------------------------------------------------
_engine: Optional[RouteEngine] = None


def get_engine() -> RouteEngine:
    global _engine
    if _engine is None:
        _engine = build_engine()
    return _engine


def set_engine(engine: Optional[RouteEngine]) -> None:
    """Swap the engine (tests, custom wiring); None resets to default."""
    global _engine
    _engine = engine


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------

@app.exception_handler(InvalidInput)
def _invalid_input(request: Request, exc: InvalidInput):
    return JSONResponse(status_code=400, content={"error": "invalid_input", "detail": str(exc)})


@app.exception_handler(NoRouteFound)
def _no_route(request: Request, exc: NoRouteFound):
    log.warning("No route found: %s", exc)
    return JSONResponse(status_code=404, content={"error": "no_route", "detail": str(exc)})


@app.exception_handler(TransportFailure)
def _transport(request: Request, exc: TransportFailure):
    log.error("Routing service failure: %s", exc)
    return JSONResponse(status_code=502, content={"error": "routing_unavailable", "detail": str(exc)})


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------

class RouteRequest(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    target_steps: int = Field(default=10000, ge=500, le=60000)
    seed: Optional[int] = None


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@app.get("/health")
def health():
    return {"status": "ok", "unsafe_regions": len(get_engine().zones.regions)}


@app.post("/route", response_model=RouteResult)
def create_route(req: RouteRequest):
    result = get_engine().generate(req.lat, req.lng, req.target_steps, seed=req.seed)
    log.info(
        "Route for (%.5f, %.5f): %d m, %d steps, %s after %d attempts",
        req.lat, req.lng, result.distance, result.steps_estimate, result.quality, result.attempts,
    )
    return result


@app.get("/unsafe-regions")
def unsafe_regions():
    """Unsafe regions as a GeoJSON FeatureCollection, for map display."""
    return get_engine().zones.to_geojson()


def main() -> None:
    """Serve the API with uvicorn.  Run with:  step-loop-api"""
    import uvicorn

    from step_loop.config import settings

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [api] %(levelname)s %(name)s %(message)s",
    )
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)


if __name__ == "__main__":
    main()
