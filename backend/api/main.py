"""
Typhoon Tracker API
FastAPI backend serving active tropical cyclones for the hazard dashboard

Features:
- Multi-source typhoon aggregation (ATCF, Digital Typhoon, NHC, NOAA alerts)
- Basin filtering for the Philippines / Western Pacific view
- Forecast geometry (uncertainty cone, track, wind radii) as GeoJSON
- Consistent error responses
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Path, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ..config import ALLOWED_ORIGINS, LOG_LEVEL, VERSION
from ..processing.geometry import storm_geometry
from ..processing.units import CATEGORIES, CATEGORY_THRESHOLDS, color_for_category, intensity_label
from . import typhoons
from .typhoons import build_snapshot, find_typhoon

logging.basicConfig(level=LOG_LEVEL)
logger = logging.getLogger(__name__)

DEFAULT_BASIN = "Western Pacific"

app = FastAPI(
    title="Typhoon Tracker API",
    description="Active tropical cyclone data for the Philippines hazard dashboard, aggregated from JTWC/ATCF, Digital Typhoon, NHC and NOAA",
    version=VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "OPTIONS"],
    allow_headers=["Content-Type"],
)


# ============================================================================
# Pydantic Models
# ============================================================================

class CategoryInfo(BaseModel):
    """Display information for one intensity category"""
    category: str
    label: str
    color: str
    min_wind_kts: int = Field(..., description="Lower bound of sustained wind (knots)")
    max_wind_kts: Optional[int] = Field(None, description="Exclusive upper bound, None for Cat5")


class HealthStatus(BaseModel):
    """Service health"""
    status: str
    version: str
    sources: List[str]
    aggregate_timeout_s: float


class ErrorResponse(BaseModel):
    """Standard error response"""
    error: str
    detail: str
    status_code: int


def category_table() -> List[CategoryInfo]:
    """Intensity scale with colors and labels"""
    table = []
    lower = 0
    uppers = [upper for upper, _ in CATEGORY_THRESHOLDS] + [None]
    for category, upper in zip(CATEGORIES, uppers):
        table.append(CategoryInfo(
            category=category,
            label=intensity_label(category),
            color=color_for_category(category),
            min_wind_kts=lower,
            max_wind_kts=upper,
        ))
        lower = upper
    return table


# ============================================================================
# Exception Handlers
# ============================================================================

@app.exception_handler(HTTPException)
async def http_exception_handler(request, exc: HTTPException):
    """Custom HTTP exception handler with consistent format"""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": "HTTPException",
            "detail": exc.detail,
            "status_code": exc.status_code
        }
    )


@app.exception_handler(Exception)
async def general_exception_handler(request, exc: Exception):
    """Handle unexpected errors"""
    logger.error(f"Unhandled error: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "error": "InternalServerError",
            "detail": "An unexpected error occurred. Please try again later.",
            "status_code": 500
        }
    )


# ============================================================================
# API Endpoints
# ============================================================================

@app.get("/", tags=["General"])
async def root():
    """API root endpoint"""
    return {
        "message": "Typhoon Tracker API",
        "version": VERSION,
        "documentation": "/docs",
        "endpoints": {
            "health": "/api/health",
            "typhoons": "/api/typhoons?basin=Western Pacific",
            "all_typhoons": "/api/typhoons/all",
            "categories": "/api/typhoons/categories",
            "geometry": "/api/typhoons/{typhoon_id}/geometry",
        }
    }


@app.get("/api/health", response_model=HealthStatus, tags=["General"])
async def health():
    """Health check endpoint"""
    aggregator = typhoons.typhoon_aggregator
    return HealthStatus(
        status="healthy",
        version=VERSION,
        sources=aggregator.source_names,
        aggregate_timeout_s=aggregator.timeout,
    )


# ============================================================================
# Typhoon Endpoints
# ============================================================================

@app.get("/api/typhoons", tags=["Typhoons"])
async def get_typhoons(
    basin: str = Query(DEFAULT_BASIN, description="Basin name, e.g. 'Western Pacific', 'Atlantic', 'Eastern Pacific'")
):
    """
    Get active tropical cyclones for a basin.

    The default Western Pacific view also includes Eastern Pacific storms.
    Any other basin is matched exactly against the provider-reported name.
    An empty list means there are no active storms.
    """
    try:
        if basin == DEFAULT_BASIN:
            records = await typhoons.fetch_western_pacific_typhoons()
        else:
            records = await typhoons.fetch_typhoons_for_basin([basin])
        return build_snapshot(records, basin)
    except Exception as e:
        logger.error(f"Error in typhoons API: {str(e)}")
        return JSONResponse(
            status_code=500,
            content={
                "typhoons": [],
                "metadata": {
                    "source": "Error",
                    "basin": basin,
                    "generated": datetime.now(timezone.utc).isoformat(),
                    "count": 0,
                    "error": str(e) or "Unknown error",
                }
            }
        )


@app.get("/api/typhoons/all", tags=["Typhoons"])
async def get_all_typhoons():
    """
    Get every active tropical cyclone from every source, unfiltered.

    Records keep source priority order; the same storm may appear once per
    source that reports it.
    """
    records = await typhoons.fetch_all_typhoons()
    return build_snapshot(records, None)


@app.get("/api/typhoons/categories", response_model=Dict[str, List[CategoryInfo]], tags=["Typhoons"])
async def get_categories():
    """Intensity categories with wind thresholds, display labels and colors"""
    return {"categories": category_table()}


@app.get("/api/typhoons/{typhoon_id}/geometry", tags=["Typhoons"])
async def get_typhoon_geometry(
    typhoon_id: str = Path(..., description="Typhoon id as returned by /api/typhoons (e.g. 'wp012024')")
) -> Dict[str, Any]:
    """
    Get map geometry for one typhoon as a GeoJSON FeatureCollection.

    Includes the uncertainty cone (a circular approximation that widens
    with forecast time), forecast track and points, and wind radii display
    sizes. Storms without a forecast only return their center point.
    """
    records = await typhoons.fetch_all_typhoons()
    record = find_typhoon(records, typhoon_id)
    if record is None:
        raise HTTPException(status_code=404, detail=f"Typhoon {typhoon_id} not found")
    return storm_geometry(record)


# ============================================================================
# Main Entry Point
# ============================================================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
