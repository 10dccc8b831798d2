from __future__ import annotations

import logging
import math
from functools import lru_cache
from typing import List, Optional

import numpy as np
import pandas as pd
from fastapi import FastAPI, Query
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.schemas import MetaMonthsResponse, MonthModel, SelectionModel
from fuelboard.charts import bar_spec, monthly_frame
from fuelboard.client import MetricsClient
from fuelboard.config import Config
from fuelboard.errors import TransportError
from fuelboard.filters import MONTH_LABELS, Selection, month_code, normalize_selection, to_persisted
from fuelboard.overview import compute_overview, compute_totals, load_comparison, load_overview, load_period_breakdown

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(title="Fuel Dashboard API", version="0.1.0")
logger = logging.getLogger(__name__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=Config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@lru_cache(maxsize=1)
def get_client() -> MetricsClient:
    return MetricsClient()


def _split_values(values: Optional[List[str]]) -> List[str]:
    """Accept both ``?months=10,11`` and ``?months=10&months=11``."""
    out: List[str] = []
    for value in values or []:
        out.extend(part.strip() for part in str(value).split(",") if part.strip())
    return out


def _selection(site: Optional[str], months: Optional[List[str]], years: Optional[List[str]]) -> Selection:
    return normalize_selection(site, [month_code(m) for m in _split_values(months)], _split_values(years))


def _selection_from_model(model: SelectionModel) -> Selection:
    raw = model.model_dump()
    return normalize_selection(raw["site"], [month_code(m) for m in raw["months"]], raw["years"])


def _json(data: object) -> JSONResponse:
    """Return JSON with safe encoding for pandas/numpy objects."""

    def _safe_float(value: object) -> float | None:
        try:
            out = float(value)  # type: ignore[arg-type]
        except Exception:
            return None
        if math.isnan(out) or math.isinf(out):
            return None
        return out

    return JSONResponse(
        content=jsonable_encoder(
            data,
            custom_encoder={
                type(pd.NA): lambda _: None,
                np.integer: int,
                float: _safe_float,
                np.floating: _safe_float,
                np.bool_: bool,
                np.ndarray: lambda arr: arr.tolist(),
                pd.Timestamp: lambda ts: ts.isoformat(),
            },
        )
    )


def _error(exc: Exception) -> JSONResponse:
    status = 502 if isinstance(exc, TransportError) else 500
    return JSONResponse(status_code=status, content={"error": str(exc), "type": type(exc).__name__})


@app.get("/meta/sites")
def meta_sites():
    try:
        return _json({"sites": get_client().sites()})
    except Exception as exc:
        logger.exception("meta_sites failed")
        return _error(exc)


@app.get("/meta/cities")
def meta_cities():
    try:
        return _json({"cities": get_client().cities()})
    except Exception as exc:
        logger.exception("meta_cities failed")
        return _error(exc)


@app.get("/meta/months", response_model=MetaMonthsResponse)
def meta_months():
    return MetaMonthsResponse(months=[MonthModel(code=i, label=label) for i, label in enumerate(MONTH_LABELS, start=1)])


@app.get("/health")
def health():
    try:
        upstream = get_client().health()
        return _json({"status": "ok", "upstream": upstream})
    except Exception as exc:
        logger.exception("health failed")
        return _error(exc)


async def _overview(selection: Selection) -> JSONResponse:
    try:
        bundle = await load_overview(get_client(), selection)
        return _json(compute_overview(selection, bundle))
    except Exception as exc:
        logger.exception("overview failed")
        return _error(exc)


@app.get("/overview")
async def overview(
    site: Optional[str] = Query(default=None),
    months: Optional[List[str]] = Query(default=None),
    years: Optional[List[str]] = Query(default=None),
):
    return await _overview(_selection(site, months, years))


@app.post("/overview")
async def overview_post(selection: SelectionModel):
    return await _overview(_selection_from_model(selection))


@app.get("/periods")
async def periods(
    site: Optional[str] = Query(default=None),
    months: Optional[List[str]] = Query(default=None),
    years: Optional[List[str]] = Query(default=None),
):
    try:
        selection = _selection(site, months, years)
        return _json(await load_period_breakdown(get_client(), selection))
    except Exception as exc:
        logger.exception("periods failed")
        return _error(exc)


@app.get("/compare")
async def compare(
    sites: Optional[List[str]] = Query(default=None),
    months: Optional[List[str]] = Query(default=None),
    years: Optional[List[str]] = Query(default=None),
    rank_by: str = Query(default="netSales"),
):
    try:
        selection = _selection(None, months, years)
        return _json(await load_comparison(get_client(), _split_values(sites), selection, rank_by=rank_by))
    except Exception as exc:
        logger.exception("compare failed")
        return _error(exc)


@app.get("/monthly")
def monthly(
    site: Optional[str] = Query(default=None),
    years: Optional[List[str]] = Query(default=None),
):
    try:
        selection = _selection(site, None, years)
        if selection.site_id == "all" or not selection.years:
            return _json({"selection": to_persisted(selection), "rows": [], "chart": None})
        df = monthly_frame(get_client().monthly_performance(selection))
        return _json(
            {
                "selection": to_persisted(selection),
                "rows": df.to_dict(orient="records"),
                "chart": bar_spec(df, "label", "Sales", title="Monthly Sales") if "Sales" in df.columns else None,
            }
        )
    except Exception as exc:
        logger.exception("monthly failed")
        return _error(exc)


@app.get("/totals")
def totals(
    months: Optional[List[str]] = Query(default=None),
    years: Optional[List[str]] = Query(default=None),
):
    try:
        # no months or years asks for all-time totals
        selection = _selection(None, months, years)
        return _json(compute_totals(selection, get_client().total_sales(selection)))
    except Exception as exc:
        logger.exception("totals failed")
        return _error(exc)
