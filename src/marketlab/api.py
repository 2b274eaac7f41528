"""FastAPI application for the market experiment engine.

Preview endpoints for benchmarks and single rounds. Experiments themselves
run through the orchestrator, which has no HTTP surface.
"""

from typing import Any, Dict

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import get_settings
from .equilibrium import compute_equilibria
from .errors import MarketLabError
from .games import resolve_round
from .logging import get_logger, handle_marketlab_error, log_execution_time
from .models.market import MarketConfig
from .randomizer import ParameterRandomizer
from .schemas import (
    MarketConfigRequest,
    ResolveRoundRequest,
    equilibrium_report_to_dict,
    round_result_to_dict,
)
from .validation import validate_market_config

logger = get_logger(__name__)
settings = get_settings()

app = FastAPI(
    title=settings.app_name,
    description="Market simulation and equilibrium engine for oligopoly experiments",
    version=settings.version,
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _validated_config(request: MarketConfigRequest) -> MarketConfig:
    config = request.to_config()
    validate_market_config(config, get_settings())
    return config


@app.get("/healthz")
async def health_check() -> JSONResponse:
    """Health check endpoint for monitoring and load balancers."""
    return JSONResponse(content={"ok": True})


@app.get("/")
async def root() -> Dict[str, str]:
    """Root endpoint with basic API information."""
    return {"message": settings.app_name, "version": settings.version, "docs": "/docs"}


@app.post("/equilibria")
async def equilibria(request: MarketConfigRequest) -> Dict[str, Any]:
    """Compute the theoretical benchmarks for a configuration.

    Random parameters are evaluated at their expected values. Benchmarks
    without a solution come back with ``calculable`` false and null numbers.

    Raises:
        HTTPException: 422 if the configuration is invalid
    """
    try:
        with log_execution_time(logger, "equilibrium computation"):
            config = _validated_config(request)
            report = compute_equilibria(config)
    except MarketLabError as e:
        raise handle_marketlab_error(logger, e)
    return equilibrium_report_to_dict(report)


@app.post("/rounds/resolve")
async def resolve(request: ResolveRoundRequest) -> Dict[str, Any]:
    """Resolve one round for the given decisions.

    Parameters are drawn once from the configuration, using ``seed`` when
    provided so the draw can be reproduced.

    Raises:
        HTTPException: 422 if the configuration or the decisions are invalid
    """
    try:
        with log_execution_time(logger, f"round {request.round_number} resolution"):
            config = _validated_config(request.config)
            realized = ParameterRandomizer(seed=request.seed).draw_parameters(config)
            result = resolve_round(
                request.round_number, request.decisions, config, realized
            )
    except MarketLabError as e:
        raise handle_marketlab_error(logger, e)
    except ValueError as e:
        logger.warning(f"Invalid decisions: {e}")
        raise HTTPException(status_code=422, detail=str(e))
    return round_result_to_dict(result)
