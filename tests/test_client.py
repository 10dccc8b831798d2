import pytest
import requests

from fuelboard.client import MetricsClient
from fuelboard.errors import TransportError
from fuelboard.filters import Selection


class StubResponse:
    def __init__(self, status_code=200, payload=None, reason="OK", raw=None):
        self.status_code = status_code
        self.reason = reason
        self._payload = payload
        self._raw = raw

    def json(self):
        if self._raw is not None:
            raise ValueError("not json")
        return self._payload


class StubSession:
    def __init__(self, response=None, exc=None):
        self.response = response
        self.exc = exc
        self.calls = []

    def get(self, url, params=None, timeout=None):
        self.calls.append({"url": url, "params": dict(params or {}), "timeout": timeout})
        if self.exc is not None:
            raise self.exc
        return self.response


def _client(response=None, exc=None):
    session = StubSession(response, exc)
    return MetricsClient("http://metrics.test/api", session=session), session


def test_metrics_unwraps_envelope_and_shapes_params():
    client, session = _client(StubResponse(payload={"success": True, "data": {"netSales": 10.5}}))
    data = client.metrics(Selection("7", (10, 11), (2025,)))
    assert data == {"netSales": 10.5}
    assert session.calls[0]["url"] == "http://metrics.test/api/dashboard/metrics"
    assert session.calls[0]["params"] == {"siteId": "7", "months": "10,11", "year": "2025"}


def test_sites_defaults_to_empty_list():
    client, _ = _client(StubResponse(payload={"success": True}))
    assert client.sites() == []


def test_site_by_id_path():
    client, session = _client(StubResponse(payload={"success": True, "data": {"id": 7, "name": "Ashford"}}))
    assert client.site("7")["name"] == "Ashford"
    assert session.calls[0]["url"].endswith("/sites/7")


def test_non_2xx_is_failure_regardless_of_body():
    client, _ = _client(StubResponse(status_code=500, reason="Server Error", payload={"success": True, "data": {}}))
    with pytest.raises(TransportError) as info:
        client.metrics(Selection("7", (11,), (2025,)))
    assert info.value.status == 500
    assert "500" in str(info.value)


def test_unsuccessful_envelope_is_failure():
    client, _ = _client(StubResponse(payload={"success": False, "message": "siteId is required"}))
    with pytest.raises(TransportError, match="siteId is required"):
        client.status("7")


def test_network_error_is_transport_error():
    client, _ = _client(exc=requests.ConnectionError("refused"))
    with pytest.raises(TransportError) as info:
        client.sites()
    assert info.value.status is None


def test_non_json_body_is_transport_error():
    client, _ = _client(StubResponse(raw="<html>"))
    with pytest.raises(TransportError):
        client.date_wise(Selection("7", (11,), (2025,)))


def test_health_hits_service_root():
    client, session = _client(StubResponse(payload={"status": "OK"}))
    assert client.health() == {"status": "OK"}
    assert session.calls[0]["url"] == "http://metrics.test/health"


def test_site_id_is_quoted_in_path():
    client, session = _client(StubResponse(payload={"success": True, "data": {}}))
    client.site("7/../admin")
    assert session.calls[0]["url"] == "http://metrics.test/api/sites/7%2F..%2Fadmin"
