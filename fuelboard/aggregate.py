from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import dataclass, field
from typing import Any, Awaitable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from fuelboard.config import Config

logger = logging.getLogger(__name__)

MetricsResult = Dict[str, Any]

# Summed when the same metrics are fetched for several date scopes
ADDITIVE_FIELDS: Tuple[str, ...] = (
    "totalFuelVolume",
    "netSales",
    "profit",
    "customerCount",
    "bunkeredVolume",
    "nonBunkeredVolume",
    "bunkeredSales",
    "nonBunkeredSales",
    "bunkeredPurchases",
    "nonBunkeredPurchases",
    "shopSales",
    "shopPurchases",
    "valetSales",
    "valetPurchases",
    "overheads",
    "labourCost",
    "fuelProfit",
    "shopProfit",
    "valetProfit",
)

# Per-litre rates, weighted by fuel volume
VOLUME_WEIGHTED_FIELDS: Tuple[str, ...] = ("avgPPL", "actualPPL")

SITE_FIELDS: Dict[str, str] = {"name": "siteName", "city": "city", "cityDisplay": "cityDisplay"}


@dataclass(frozen=True)
class Outcome:
    value: Any = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class Aggregate:
    record: MetricsResult = field(default_factory=dict)
    failed: Dict[str, str] = field(default_factory=dict)

    @property
    def partial(self) -> bool:
        return bool(self.failed) and bool(self.record)


@dataclass(frozen=True)
class FuelSalesSplit:
    bunkered: float
    non_bunkered: float
    estimated: bool = False


async def settle(**awaitables: Awaitable[Any]) -> Dict[str, Outcome]:
    """Await several fetches concurrently; one failing never hides the others."""
    names = list(awaitables)
    results = await asyncio.gather(*awaitables.values(), return_exceptions=True)
    out: Dict[str, Outcome] = {}
    for name, result in zip(names, results):
        if isinstance(result, asyncio.CancelledError):
            raise result
        if isinstance(result, BaseException):
            out[name] = Outcome(error=result)
        else:
            out[name] = Outcome(value=result)
    return out


def _present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, float) and math.isnan(value):
        return False
    return True


def _as_mapping(result: Union[Mapping[str, Any], Outcome, None]) -> Mapping[str, Any]:
    if isinstance(result, Outcome):
        result = result.value if result.ok else None
    if isinstance(result, Mapping):
        return result
    return {}


def aggregate(*results: Union[Mapping[str, Any], Outcome, None]) -> MetricsResult:
    """Merge result mappings into one record.

    The first present value for a key wins. Missing or null fields are
    omitted rather than coerced to zero, and failed results contribute nothing.
    """
    record: MetricsResult = {}
    for result in results:
        for key, value in _as_mapping(result).items():
            if key not in record and _present(value):
                record[key] = value
    return record


def site_fields(site: Optional[Mapping[str, Any]]) -> MetricsResult:
    out: MetricsResult = {}
    for src, dst in SITE_FIELDS.items():
        value = (site or {}).get(src)
        if _present(value):
            out[dst] = value
    return out


def compose(**outcomes: Outcome) -> Aggregate:
    """Combine named fetch outcomes into one display record.

    The ``site`` outcome contributes ``siteName``/``city``/``cityDisplay``;
    every other outcome contributes its fields as-is. A failed slice leaves
    its fields absent and is listed in ``failed``.
    """
    parts: List[Mapping[str, Any]] = []
    failed: Dict[str, str] = {}
    for name, outcome in outcomes.items():
        if not outcome.ok:
            failed[name] = str(outcome.error)
            logger.debug("Slice %r failed: %s", name, outcome.error)
            continue
        if name == "site":
            parts.append(site_fields(outcome.value))
        else:
            parts.append(_as_mapping(outcome.value))
    return Aggregate(record=aggregate(*parts), failed=failed)


def _number(value: Any) -> Optional[float]:
    if not _present(value) or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def combine_periods(results: Iterable[Union[Mapping[str, Any], Outcome, None]]) -> MetricsResult:
    """Combine metrics fetched for different date scopes of the same site."""
    rows = [_as_mapping(r) for r in results]
    rows = [r for r in rows if r]
    if not rows:
        return {}

    combined: MetricsResult = {}
    for key in ADDITIVE_FIELDS:
        values = [v for v in (_number(r.get(key)) for r in rows) if v is not None]
        if values:
            combined[key] = sum(values)

    for key in VOLUME_WEIGHTED_FIELDS:
        pairs = [(_number(r.get(key)), _number(r.get("totalFuelVolume"))) for r in rows]
        values = [v for v, _ in pairs if v is not None]
        if not values:
            continue
        weighted = [(v, w) for v, w in pairs if v is not None and w is not None and w > 0]
        total_weight = sum(w for _, w in weighted)
        if total_weight > 0:
            combined[key] = sum(v * w for v, w in weighted) / total_weight
        else:
            combined[key] = sum(values) / len(values)

    net_sales = combined.get("netSales")
    if "profit" in combined and net_sales:
        combined["profitMargin"] = combined["profit"] / net_sales * 100
    if "labourCost" in combined and net_sales:
        combined["labourCostPercent"] = combined["labourCost"] / net_sales * 100
    if "shopSales" in combined and combined.get("customerCount"):
        combined["basketSize"] = combined["shopSales"] / combined["customerCount"]

    for key in ("profitMargin", "labourCostPercent", "basketSize"):
        if key in combined:
            continue
        values = [v for v in (_number(r.get(key)) for r in rows) if v is not None]
        if values:
            combined[key] = sum(values) / len(values)

    # anything else (labels, ids) keeps its first present value
    for key, value in aggregate(*rows).items():
        combined.setdefault(key, value)
    return combined


def _distribution_value(distribution: Sequence[Mapping[str, Any]], name: str) -> Optional[float]:
    for item in distribution or []:
        if item.get("name") == name:
            return _number(item.get("value"))
    return None


def split_fuel_sales(
    distribution: Sequence[Mapping[str, Any]],
    *,
    bunkered_share: float = Config.ESTIMATED_BUNKERED_SHARE,
) -> Optional[FuelSalesSplit]:
    """Bunkered vs non-bunkered fuel sales.

    Uses the explicit breakdown when the distribution carries it. Otherwise
    falls back to a fixed share of ``Fuel Sales`` and marks the split as an
    estimate.
    """
    bunkered = _distribution_value(distribution, "Bunkered Sales")
    non_bunkered = _distribution_value(distribution, "Non-bunkered Sales")
    if bunkered or non_bunkered:
        return FuelSalesSplit(bunkered=bunkered or 0.0, non_bunkered=non_bunkered or 0.0)

    fuel = _distribution_value(distribution, "Fuel Sales")
    if not fuel:
        return None
    return FuelSalesSplit(
        bunkered=fuel * bunkered_share,
        non_bunkered=fuel * (1 - bunkered_share),
        estimated=True,
    )


__all__ = [
    "Aggregate",
    "FuelSalesSplit",
    "MetricsResult",
    "Outcome",
    "aggregate",
    "combine_periods",
    "compose",
    "settle",
    "site_fields",
    "split_fuel_sales",
]
