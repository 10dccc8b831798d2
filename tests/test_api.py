import pytest
from fastapi.testclient import TestClient

from api import main
from fuelboard.errors import TransportError


class FakeClient:
    def __init__(self, fail=()):
        self.fail = set(fail)
        self.selections = []

    def _check(self, name):
        if name in self.fail:
            raise TransportError("API Error: 503 Service Unavailable", status=503)

    def sites(self):
        self._check("sites")
        return [{"id": 7, "name": "Ashford"}]

    def cities(self):
        return [{"value": "ashford", "label": "Ashford"}]

    def metrics(self, selection):
        self._check("metrics")
        self.selections.append(selection)
        return {"netSales": 2500.0, "profit": 500.0}

    def site(self, site_id):
        self._check("site")
        return {"id": int(site_id), "name": "Ashford"}

    def status(self, site_id):
        return {"siteId": site_id, "status": "operational"}

    def sales_distribution(self, selection):
        return [{"name": "Fuel Sales", "value": 100.0}]

    def date_wise(self, selection):
        return [{"day": 1, "sales": 10.0}]

    def monthly_performance(self, selection):
        return {"labels": ["Jan", "Feb"], "datasets": [{"name": "Sales", "data": [5.0, None]}]}

    def total_sales(self, selection):
        return {"totalSales": 1200.0, "fuelSales": 1000.0, "shopSales": 150.0, "valetSales": 50.0}


@pytest.fixture
def fake():
    return FakeClient()


@pytest.fixture
def client(monkeypatch, fake):
    monkeypatch.setattr(main, "get_client", lambda: fake)
    return TestClient(main.app)


def test_meta_months(client):
    body = client.get("/meta/months").json()
    assert body["months"][0] == {"code": 1, "label": "january"}
    assert len(body["months"]) == 12


def test_meta_sites(client):
    assert client.get("/meta/sites").json() == {"sites": [{"id": 7, "name": "Ashford"}]}


def test_overview_accepts_comma_joined_and_labelled_months(client, fake):
    resp = client.get("/overview", params={"site": "7", "months": "oct,11", "years": "2025"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["selection"] == {"site": "7", "months": [10, 11], "years": [2025]}
    assert body["record"]["netSales"] == 2500.0
    assert body["record"]["siteName"] == "Ashford"
    assert fake.selections[0].months == (10, 11)


def test_overview_post_body(client):
    resp = client.post("/overview", json={"site": 7, "months": [11], "years": [2025]})
    assert resp.status_code == 200
    assert resp.json()["record"]["profitMargin"] == pytest.approx(20.0)


def test_overview_all_sites_is_idle(client, fake):
    body = client.get("/overview", params={"months": "11", "years": "2025"}).json()
    assert body["queryable"] is False
    assert fake.selections == []


def test_overview_reports_partial_failure(monkeypatch):
    monkeypatch.setattr(main, "get_client", lambda: FakeClient(fail={"site"}))
    body = TestClient(main.app).get("/overview", params={"site": "7", "months": "11", "years": "2025"}).json()
    assert body["record"]["netSales"] == 2500.0
    assert "siteName" not in body["record"]
    assert "site" in body["failed"]


def test_transport_error_maps_to_bad_gateway(monkeypatch):
    monkeypatch.setattr(main, "get_client", lambda: FakeClient(fail={"sites"}))
    resp = TestClient(main.app).get("/meta/sites")
    assert resp.status_code == 502
    assert resp.json()["type"] == "TransportError"


def test_monthly_rows_and_chart(client):
    body = client.get("/monthly", params={"site": "7", "years": "2025"}).json()
    assert [row["label"] for row in body["rows"]] == ["Jan", "Feb"]
    assert body["rows"][1]["Sales"] is None
    assert body["chart"] is not None


def test_totals(client):
    body = client.get("/totals", params={"months": "11", "years": "2025"}).json()
    formatted = {card["key"]: card["formatted"] for card in body["cards"]}
    assert formatted["totalSales"] == "£1.2k"


def test_totals_without_dates_asks_for_all_time(monkeypatch):
    fake = FakeClient()
    seen = []
    real_total_sales = fake.total_sales

    def total_sales(selection):
        seen.append(selection)
        return real_total_sales(selection)

    fake.total_sales = total_sales
    monkeypatch.setattr(main, "get_client", lambda: fake)
    body = TestClient(main.app).get("/totals").json()
    assert seen[0].months == () and seen[0].years == ()
    assert {card["key"]: card["formatted"] for card in body["cards"]}["totalSales"] == "£1.2k"


def test_compare_ranks_sites_and_reports_failed_site(monkeypatch):
    fake = FakeClient()
    sales = {"3": 900.0, "7": 2500.0}

    def metrics(selection):
        fake.selections.append(selection)
        if selection.site_id not in sales:
            raise TransportError("API Error: 503 Service Unavailable", status=503)
        return {"netSales": sales[selection.site_id]}

    fake.metrics = metrics
    monkeypatch.setattr(main, "get_client", lambda: fake)
    resp = TestClient(main.app).get("/compare", params={"sites": "3,9,7", "months": "10,11", "years": "2025"})
    assert resp.status_code == 200
    body = resp.json()
    assert [row["siteId"] for row in body["rows"]] == ["7", "3", "9"]
    assert list(body["failed"]) == ["9"]
    assert "netSales" not in body["rows"][2]["record"]
    assert all(s.months == (10, 11) for s in fake.selections)
