"""Application configuration."""

from __future__ import annotations

import os
from typing import Optional, Tuple

from dotenv import load_dotenv

load_dotenv()


def _env_float(name: str, default: Optional[float]) -> Optional[float]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        return default


class Config:
    """Settings for the dashboard core and its surfaces."""

    # -------------------------
    # Remote metrics API
    # -------------------------
    API_BASE_URL = os.getenv("FUELBOARD_API_URL", "http://localhost:3001/api")

    # None means the transport default (no explicit timeout)
    REQUEST_TIMEOUT: Optional[float] = _env_float("FUELBOARD_REQUEST_TIMEOUT", None)

    # -------------------------
    # Persisted filters
    # -------------------------
    FILTER_STORAGE_KEY = "dashboardFilters"
    COMPARISON_STORAGE_KEY = "comparisonFilters"
    METRICS_COMPARISON_STORAGE_KEY = "metricsComparisonFilters"
    DEFAULT_SITE = "all"
    DEFAULT_MONTHS: Tuple[int, ...] = (11,)
    DEFAULT_YEARS: Tuple[int, ...] = (2025,)

    # -------------------------
    # Display
    # -------------------------
    ANIMATION_DURATION: float = _env_float("FUELBOARD_ANIMATION_DURATION", 1.5) or 1.5
    FRAME_INTERVAL = 1 / 60

    # Pie/donut slices at or below this magnitude are noise
    MIN_SLICE_VALUE = 0.01

    # Used only when the distribution has fuel sales but no bunkered breakdown
    ESTIMATED_BUNKERED_SHARE = 0.7

    # -------------------------
    # API surface
    # -------------------------
    CORS_ORIGINS = [
        o.strip()
        for o in os.getenv("FUELBOARD_CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000").split(",")
        if o.strip()
    ]


__all__ = ["Config"]
