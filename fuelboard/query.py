from __future__ import annotations

from typing import Dict, Sequence, Tuple

from fuelboard.filters import ALL_SITES, Selection

QueryParams = Dict[str, str]

# endpoint -> (site, month, year)
ENDPOINT_DIMENSIONS: Dict[str, Tuple[bool, bool, bool]] = {
    "/dashboard/metrics": (True, True, True),
    "/dashboard/charts/sales-distribution": (True, True, True),
    "/dashboard/charts/date-wise": (True, True, True),
    "/dashboard/charts/monthly-performance": (True, False, True),
    "/dashboard/status": (True, False, False),
    "/dashboard/total-sales": (False, True, True),
}


def _encode_dimension(params: QueryParams, singular: str, plural: str, values: Sequence[int]) -> None:
    if len(values) > 1:
        params[plural] = ",".join(str(v) for v in values)
    elif len(values) == 1:
        params[singular] = str(values[0])


def shape_params(selection: Selection, *, site: bool = True, month: bool = True, year: bool = True) -> QueryParams:
    """Build the query parameters for one endpoint call.

    Each date dimension is encoded on its own: several values become one
    comma-joined plural key (``months=10,11``), a single value the singular
    key (``month=11``), and no value omits the dimension.
    """
    params: QueryParams = {}
    if site and selection.site_id and selection.site_id != ALL_SITES:
        params["siteId"] = selection.site_id
    if month:
        _encode_dimension(params, "month", "months", selection.months)
    if year:
        _encode_dimension(params, "year", "years", selection.years)
    return params


def params_for(endpoint: str, selection: Selection) -> QueryParams:
    site, month, year = ENDPOINT_DIMENSIONS[endpoint]
    return shape_params(selection, site=site, month=month, year=year)


def encode_query(params: QueryParams) -> str:
    # commas stay literal so multi-value params read as they are sent
    return "&".join(f"{k}={v}" for k, v in params.items())


__all__ = ["ENDPOINT_DIMENSIONS", "QueryParams", "encode_query", "params_for", "shape_params"]
