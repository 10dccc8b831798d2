"""HTTP client for the remote metrics API."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

import requests
from requests.utils import quote

from fuelboard.config import Config
from fuelboard.errors import TransportError
from fuelboard.filters import Selection
from fuelboard.query import QueryParams, params_for

logger = logging.getLogger(__name__)


class MetricsClient:
    """Thin wrapper over the metrics API.

    Every endpoint answers with an envelope ``{"success": ..., "data": ...}``;
    the methods return ``data``. Any non-2xx status is a ``TransportError``
    whatever the body says. There are no retries.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        *,
        session: Optional[requests.Session] = None,
        timeout: Optional[float] = None,
    ):
        self.base_url = (base_url or Config.API_BASE_URL).rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout if timeout is not None else Config.REQUEST_TIMEOUT

    def _get(self, path: str, params: Optional[Mapping[str, str]] = None, *, root: bool = False) -> Any:
        base = self.base_url
        if root and base.endswith("/api"):
            base = base[: -len("/api")]
        url = f"{base}{path}"
        logger.debug("GET %s params=%s", path, dict(params or {}))
        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
        except requests.RequestException as exc:
            logger.warning("Request to %s failed: %s", path, exc)
            raise TransportError(f"Could not reach the metrics service: {exc}", endpoint=path) from exc

        if not 200 <= response.status_code < 300:
            reason = getattr(response, "reason", "") or ""
            logger.warning("Request to %s returned %s %s", path, response.status_code, reason)
            raise TransportError(
                f"API Error: {response.status_code} {reason}".strip(),
                endpoint=path,
                status=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise TransportError(f"Malformed response from {path}", endpoint=path, status=response.status_code) from exc

        if isinstance(payload, Mapping):
            if payload.get("success") is False:
                message = payload.get("message") or payload.get("error") or "request was not successful"
                raise TransportError(f"API Error: {message}", endpoint=path, status=response.status_code)
            return payload.get("data") if not root else payload
        return payload

    # ---------------- Sites ----------------
    def sites(self) -> List[Dict[str, Any]]:
        return self._get("/sites") or []

    def site(self, site_id: str) -> Dict[str, Any]:
        return self._get(f"/sites/{quote(str(site_id), safe='')}") or {}

    def cities(self) -> List[Dict[str, Any]]:
        return self._get("/sites/cities/list") or []

    # ---------------- Dashboard ----------------
    def metrics(self, selection: Selection) -> Dict[str, Any]:
        return self._endpoint("/dashboard/metrics", selection) or {}

    def sales_distribution(self, selection: Selection) -> List[Dict[str, Any]]:
        return self._endpoint("/dashboard/charts/sales-distribution", selection) or []

    def date_wise(self, selection: Selection) -> List[Dict[str, Any]]:
        return self._endpoint("/dashboard/charts/date-wise", selection) or []

    def monthly_performance(self, selection: Selection) -> Dict[str, Any]:
        """``{"labels": [...], "datasets": [{"name": ..., "data": [...]}]}``"""
        return self._endpoint("/dashboard/charts/monthly-performance", selection) or {}

    def status(self, site_id: str) -> Dict[str, Any]:
        return self._get("/dashboard/status", {"siteId": str(site_id)}) or {}

    def total_sales(self, selection: Selection) -> Dict[str, Any]:
        return self._endpoint("/dashboard/total-sales", selection) or {}

    def health(self) -> Dict[str, Any]:
        return self._get("/health", root=True) or {}

    def _endpoint(self, path: str, selection: Selection) -> Any:
        params: QueryParams = params_for(path, selection)
        return self._get(path, params)


__all__ = ["MetricsClient"]
