from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

from fuelboard.aggregate import MetricsResult, Outcome, aggregate, combine_periods, compose, settle, split_fuel_sales
from fuelboard.charts import NON_FUEL_SLICES, bar_spec, date_wise_frame, distribution_series, pie_spec, series_records
from fuelboard.client import MetricsClient
from fuelboard.filters import ALL_SITES, Selection, is_queryable, month_label, to_persisted
from fuelboard.formatting import Unit, format_value

logger = logging.getLogger(__name__)

# (title, metrics key, unit)
KPI_CARDS: Tuple[Tuple[str, str, Unit], ...] = (
    ("Total Fuel Volume", "totalFuelVolume", Unit.VOLUME),
    ("Net Sales", "netSales", Unit.CURRENCY),
    ("Profit", "profit", Unit.CURRENCY),
    ("Profit Margin", "profitMargin", Unit.PERCENTAGE),
    ("Avg PPL", "avgPPL", Unit.RATE),
    ("Actual PPL", "actualPPL", Unit.RATE),
    ("Labour Cost %", "labourCostPercent", Unit.PERCENTAGE),
    ("Basket Size", "basketSize", Unit.CURRENCY),
    ("Customer Count", "customerCount", Unit.COUNT),
)


@dataclass
class OverviewBundle:
    selection: Selection
    outcomes: Dict[str, Outcome] = field(default_factory=dict)

    def value(self, name: str, default: Any = None) -> Any:
        outcome = self.outcomes.get(name)
        if outcome is None or not outcome.ok or outcome.value is None:
            return default
        return outcome.value


async def _call(func, *args) -> Any:
    return await asyncio.to_thread(func, *args)


async def load_overview(client: MetricsClient, selection: Selection) -> OverviewBundle:
    """Fetch every slice of the overview page concurrently.

    A non-queryable selection issues no requests and yields an empty bundle.
    """
    if not is_queryable(selection):
        return OverviewBundle(selection=selection)
    outcomes = await settle(
        metrics=_call(client.metrics, selection),
        site=_call(client.site, selection.site_id),
        status=_call(client.status, selection.site_id),
        distribution=_call(client.sales_distribution, selection),
        date_wise=_call(client.date_wise, selection),
    )
    return OverviewBundle(selection=selection, outcomes=outcomes)


def with_derived(record: MetricsResult) -> MetricsResult:
    """Fill ratios the backend leaves out when their inputs are present."""
    out = dict(record)
    net_sales = out.get("netSales")
    if "profitMargin" not in out and out.get("profit") is not None and net_sales:
        out["profitMargin"] = out["profit"] / net_sales * 100
    return out


def kpi_cards(record: MetricsResult) -> List[Dict[str, Any]]:
    cards = []
    for title, key, unit in KPI_CARDS:
        raw = record.get(key)
        cards.append(
            {
                "title": title,
                "key": key,
                "unit": unit.value,
                "raw": raw,
                "formatted": format_value(raw, unit),
            }
        )
    return cards


def compute_overview(selection: Selection, bundle: Optional[OverviewBundle]) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "selection": to_persisted(selection),
        "queryable": is_queryable(selection),
        "record": {},
        "cards": [],
        "distribution": [],
        "fuel_split": None,
        "date_wise": [],
        "charts": {},
        "status": None,
        "failed": {},
    }
    if not payload["queryable"] or bundle is None:
        return payload

    metrics_slices = {k: v for k, v in bundle.outcomes.items() if k in ("metrics", "site")}
    combined = compose(**metrics_slices)
    record = with_derived(combined.record)
    payload["record"] = record
    payload["cards"] = kpi_cards(record)
    failed = dict(combined.failed)

    distribution_rows = bundle.value("distribution", [])
    fuel_series = distribution_series(distribution_rows, exclude=NON_FUEL_SLICES)
    payload["distribution"] = series_records(fuel_series)
    split = split_fuel_sales(distribution_rows)
    if split is not None:
        payload["fuel_split"] = {
            "bunkered": split.bunkered,
            "nonBunkered": split.non_bunkered,
            "estimated": split.estimated,
        }

    daily = date_wise_frame(bundle.value("date_wise", []))
    payload["date_wise"] = daily.to_dict(orient="records")
    payload["charts"] = {
        "distribution": pie_spec(fuel_series, title="Fuel Sales Distribution"),
        "date_wise": bar_spec(daily, "day", "sales", title="Daily Sales", y_format=",.0f"),
    }
    payload["status"] = bundle.value("status")

    for name in ("status", "distribution", "date_wise"):
        outcome = bundle.outcomes.get(name)
        if outcome is not None and not outcome.ok:
            failed[name] = str(outcome.error)
    payload["failed"] = failed
    if failed:
        logger.info("Overview for site %s is partial; failed slices: %s", selection.site_id, sorted(failed))
    return payload


async def load_period_breakdown(client: MetricsClient, selection: Selection) -> Dict[str, Any]:
    """Fetch metrics one (year, month) at a time and combine them into totals."""
    if not is_queryable(selection):
        return {"selection": to_persisted(selection), "periods": [], "totals": {}, "failed": {}}

    periods = [(y, m) for y in selection.years for m in selection.months]
    scoped = {
        f"{y}-{m:02d}": _call(client.metrics, Selection(site_id=selection.site_id, months=(m,), years=(y,)))
        for y, m in periods
    }
    outcomes = await settle(**scoped)

    rows: List[Dict[str, Any]] = []
    failed: Dict[str, str] = {}
    for (year, month), (key, outcome) in zip(periods, outcomes.items()):
        if not outcome.ok:
            failed[key] = str(outcome.error)
            continue
        rows.append({"period": key, "year": year, "month": month, "label": month_label(month), "metrics": outcome.value or {}})

    totals = with_derived(combine_periods(r["metrics"] for r in rows))
    return {
        "selection": to_persisted(selection),
        "periods": rows,
        "totals": totals,
        "cards": kpi_cards(totals),
        "failed": failed,
    }


def comparison_sites(site_ids: Iterable[object]) -> List[str]:
    """Concrete site ids in first-seen order; blanks, duplicates and "all" are dropped."""
    out: List[str] = []
    for raw in site_ids or []:
        sid = "" if raw is None else str(raw).strip()
        if sid and sid != ALL_SITES and sid not in out:
            out.append(sid)
    return out


def _rank_value(record: MetricsResult, rank_by: str) -> Optional[float]:
    value = record.get(rank_by)
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


async def load_comparison(
    client: MetricsClient,
    site_ids: Iterable[object],
    selection: Selection,
    *,
    rank_by: str = "netSales",
) -> Dict[str, Any]:
    """Fetch metrics for several sites over the same months/years and rank them.

    Each site is its own slice: a site whose fetch fails keeps its row with
    only ``siteId`` set, is listed in ``failed`` and ranks last.
    """
    sites = comparison_sites(site_ids)
    payload: Dict[str, Any] = {
        "sites": sites,
        "months": list(selection.months),
        "years": list(selection.years),
        "rank_by": rank_by,
        "rows": [],
        "failed": {},
    }
    if not sites or not selection.months or not selection.years:
        return payload

    outcomes = await settle(
        **{
            sid: _call(client.metrics, Selection(site_id=sid, months=selection.months, years=selection.years))
            for sid in sites
        }
    )

    rows: List[Dict[str, Any]] = []
    failed: Dict[str, str] = {}
    for sid in sites:
        outcome = outcomes[sid]
        if not outcome.ok:
            failed[sid] = str(outcome.error)
        record = with_derived(aggregate({"siteId": sid}, outcome))
        rows.append({"siteId": sid, "record": record, "cards": kpi_cards(record)})

    # missing values rank after every present one; ties keep request order
    rows.sort(key=lambda row: (_rank_value(row["record"], rank_by) is None, -(_rank_value(row["record"], rank_by) or 0.0)))
    for position, row in enumerate(rows, start=1):
        row["rank"] = position

    payload["rows"] = rows
    payload["failed"] = failed
    if failed:
        logger.info("Comparison is partial; failed sites: %s", sorted(failed))
    return payload


def compute_totals(selection: Selection, totals: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    data = totals or {}
    cards = [
        {"title": title, "key": key, "raw": data.get(key), "formatted": format_value(data.get(key), Unit.CURRENCY)}
        for title, key in (
            ("Total Sales", "totalSales"),
            ("Fuel Sales", "fuelSales"),
            ("Shop Sales", "shopSales"),
            ("Valet Sales", "valetSales"),
        )
    ]
    return {"selection": to_persisted(selection), "totals": data, "cards": cards}


__all__ = [
    "KPI_CARDS",
    "OverviewBundle",
    "comparison_sites",
    "compute_overview",
    "compute_totals",
    "kpi_cards",
    "load_comparison",
    "load_overview",
    "load_period_breakdown",
    "with_derived",
]
