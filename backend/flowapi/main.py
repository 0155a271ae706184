"""
PalletFlow Backend API
Main application entry point with FastAPI
"""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .core import logger, settings, PalletFlowException
from .core.handlers import palletflow_exception_handler, general_exception_handler
from .routers import scenarios_router, simulation_router

app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    debug=settings.debug,
    description="""
# PalletFlow Warehouse Flow Simulation

Hosts deterministic, tick-driven simulations of pallets moving through
warehouse flow graphs.

## Features

- **Scenario validation**: Structural checks on flow graphs before a run
- **Hosted sessions**: One engine per session, driven by explicit ticks
- **Event stream**: Tick responses carry every spawn, state change and completion
- **Live settings**: Change speed or duration cap of a running session

## Quick Start

1. Validate a scenario via `POST /scenarios/validate`
2. Create a session with `POST /simulations`
3. Advance it with `POST /simulations/{id}/tick`
4. Inspect pallets at `GET /simulations/{id}`
    """,
    license_info={
        "name": "MIT"
    }
)

# CORS middleware to allow editor requests
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

app.add_exception_handler(PalletFlowException, palletflow_exception_handler)
app.add_exception_handler(Exception, general_exception_handler)

# Include routers
app.include_router(scenarios_router)
app.include_router(simulation_router)

@app.get("/")
def health_check():
    """API health check"""
    return {"status": "ok", "service": settings.app_name, "version": settings.app_version}

@app.on_event("startup")
def startup_event():
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Session limit: {settings.max_sessions}, max tick delta: {settings.max_tick_delta_ms} ms")
