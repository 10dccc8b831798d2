import asyncio

import pytest

from fuelboard.aggregate import Outcome, aggregate, combine_periods, compose, settle, split_fuel_sales
from fuelboard.errors import TransportError


def test_aggregate_omits_missing_and_keeps_zero():
    record = aggregate({"netSales": 0, "profit": None}, {"profit": 12.5, "netSales": 99})
    assert record == {"netSales": 0, "profit": 12.5}


def test_aggregate_skips_failed_outcomes():
    record = aggregate(Outcome(error=TransportError("down")), Outcome(value={"avgPPL": 6.1}), None)
    assert record == {"avgPPL": 6.1}


def test_metrics_ok_site_failed_keeps_metrics():
    result = compose(
        metrics=Outcome(value={"netSales": 1000.0, "profit": 150.0, "totalFuelVolume": 900.0}),
        site=Outcome(error=TransportError("API Error: 404 Not Found", status=404)),
    )
    assert result.record == {"netSales": 1000.0, "profit": 150.0, "totalFuelVolume": 900.0}
    assert "siteName" not in result.record
    assert result.failed == {"site": "API Error: 404 Not Found"}
    assert result.partial


def test_site_ok_metrics_failed_keeps_site_name():
    result = compose(
        metrics=Outcome(error=TransportError("timeout")),
        site=Outcome(value={"id": 7, "name": "Ashford", "city": "ashford", "cityDisplay": "Ashford"}),
    )
    assert result.record == {"siteName": "Ashford", "city": "ashford", "cityDisplay": "Ashford"}
    assert "netSales" not in result.record
    assert list(result.failed) == ["metrics"]


def test_settle_collects_failures_per_slice():
    async def ok():
        return {"a": 1}

    async def boom():
        raise TransportError("nope")

    outcomes = asyncio.run(settle(first=ok(), second=boom()))
    assert outcomes["first"].ok and outcomes["first"].value == {"a": 1}
    assert not outcomes["second"].ok
    assert isinstance(outcomes["second"].error, TransportError)


def test_combine_periods_sums_and_weights():
    october = {"netSales": 1000.0, "profit": 100.0, "totalFuelVolume": 1000.0, "avgPPL": 5.0, "customerCount": 10, "shopSales": 50.0}
    november = {"netSales": 3000.0, "profit": 500.0, "totalFuelVolume": 3000.0, "avgPPL": 7.0, "customerCount": 30, "shopSales": 150.0}
    combined = combine_periods([october, november])
    assert combined["netSales"] == 4000.0
    assert combined["profit"] == 600.0
    assert combined["totalFuelVolume"] == 4000.0
    assert combined["avgPPL"] == pytest.approx(6.5)
    assert combined["profitMargin"] == pytest.approx(15.0)
    assert combined["basketSize"] == pytest.approx(5.0)


def test_combine_periods_keeps_absent_fields_absent():
    combined = combine_periods([{"netSales": 10.0}, Outcome(error=TransportError("x")), {"netSales": 5.0}])
    assert combined == {"netSales": 15.0}
    assert combine_periods([]) == {}


def test_split_uses_explicit_breakdown():
    split = split_fuel_sales([{"name": "Bunkered Sales", "value": 800}, {"name": "Non-bunkered Sales", "value": 200}])
    assert (split.bunkered, split.non_bunkered, split.estimated) == (800, 200, False)


def test_split_estimates_from_fuel_sales():
    split = split_fuel_sales([{"name": "Fuel Sales", "value": 1000}, {"name": "Shop Sales", "value": 50}])
    assert split.estimated
    assert split.bunkered == pytest.approx(700)
    assert split.non_bunkered == pytest.approx(300)


def test_split_without_fuel_data():
    assert split_fuel_sales([{"name": "Shop Sales", "value": 50}]) is None
    assert split_fuel_sales([]) is None
