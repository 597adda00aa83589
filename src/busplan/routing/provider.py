"""
provider.py

HTTP client of the best-order routing service.

Sole responsibility: talk to the provider over HTTP and hand back the raw
route payload. It knows the provider's URL layout, query parameters and
error shapes; it does not know about students, buses or clusters.
"""

import os
from typing import Any, Optional, Sequence
from urllib.parse import urlencode

import requests

from busplan.config.loader import API_KEY_ENV_VAR
from busplan.config.params import ProviderParams
from busplan.errors import OptimizerError
from busplan.registry import register_routing_provider
from busplan.utils.logging import BusplanLogger

logger = BusplanLogger.get_logger(__name__)

ROUTE_ENDPOINT = "/routing/1/calculateRoute/{path}/json"
BATCH_ENDPOINT = "/routing/batch/sync/json"


def _first_route(data: Any) -> dict[str, Any]:
    """Extract ``routes[0]`` from a provider body, or explain why there is none."""
    if not isinstance(data, dict):
        raise OptimizerError("Routing provider returned an unexpected body")
    if "error" in data:
        error = data["error"]
        description = error.get("description") if isinstance(error, dict) else error
        raise OptimizerError(f"Routing provider error: {description}")
    routes = data.get("routes")
    if not routes or not isinstance(routes[0], dict):
        raise OptimizerError("Routing provider returned no route")
    return routes[0]


@register_routing_provider('tomtom')
class TomTomRoutingProvider:
    """
    Client of the TomTom-style routing API.

    Single mode calls ``calculateRoute`` once per path; batch mode packs every
    path into one synchronous batch call. Each call carries the configured
    timeout. There are no retries.
    """

    def __init__(self, params: Optional[ProviderParams] = None, session: Optional[requests.Session] = None):
        self.params = params or ProviderParams()
        self.api_key = self.params.api_key or os.getenv(API_KEY_ENV_VAR)
        self.base_url = self.params.base_url.rstrip("/")
        self.timeout = self.params.timeout_s
        self.session = session or requests.Session()

        if not self.api_key:
            logger.warning(f"No routing API key configured (set {API_KEY_ENV_VAR})")

    # ----------------
    # Internal helpers
    # ----------------
    def _route_params(self, options: Optional[dict[str, Any]]) -> dict[str, str]:
        options = options or {}
        query = {
            "computeBestOrder": "true",
            "routeType": self.params.travel_mode,
            "traffic": "true" if options.get("traffic", self.params.traffic) else "false",
        }
        # departure and arrival are mutually exclusive for the provider
        if options.get("departAt"):
            query["departAt"] = str(options["departAt"])
        elif options.get("arriveAt"):
            query["arriveAt"] = str(options["arriveAt"])
        return query

    def _send(self, method: str, url: str, **kwargs) -> Any:
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
            response.raise_for_status()
        except requests.Timeout as exc:
            raise OptimizerError(f"Routing provider timed out after {self.timeout}s") from exc
        except requests.RequestException as exc:
            raise OptimizerError(f"Routing provider request failed: {exc}") from exc

        try:
            return response.json()
        except ValueError as exc:
            raise OptimizerError("Routing provider returned a non-JSON body") from exc

    # ----------------
    # Public methods
    # ----------------
    def calculate_route(self, path: str, *, options: Optional[dict[str, Any]] = None) -> dict[str, Any]:
        """Optimize one path; returns the first route object of the response."""
        url = self.base_url + ROUTE_ENDPOINT.format(path=path)
        params = {"key": self.api_key, **self._route_params(options)}
        logger.debug(f"Requesting best-order route for {path.count(':') + 1} waypoints")
        return _first_route(self._send("GET", url, params=params))

    def calculate_batch(
        self, paths: Sequence[str], *, options: Optional[dict[str, Any]] = None
    ) -> list[dict[str, Any] | Exception]:
        """Optimize every path in one batch call.

        A failure of the whole call raises; a failure of one item is returned
        in that item's position as an ``OptimizerError``.
        """
        if not paths:
            return []
        query = urlencode(self._route_params(options))
        items = [
            {"query": f"{ROUTE_ENDPOINT.format(path=path)}?{query}"}
            for path in paths
        ]
        logger.debug(f"Requesting batch of {len(items)} best-order routes")
        data = self._send(
            "POST", self.base_url + BATCH_ENDPOINT, params={"key": self.api_key}, json={"batchItems": items}
        )

        returned = data.get("batchItems") if isinstance(data, dict) else None
        if not isinstance(returned, list):
            raise OptimizerError("Routing provider batch response has no batchItems")

        results: list[dict[str, Any] | Exception] = []
        for index in range(len(paths)):
            if index >= len(returned):
                results.append(OptimizerError(f"Batch item {index} missing from provider response"))
                continue
            item = returned[index] or {}
            if not isinstance(item, dict):
                results.append(OptimizerError(f"Batch item {index} is malformed"))
                continue
            status = item.get("statusCode", 200)
            try:
                if status != 200:
                    body = item.get("response") or {}
                    error = body.get("error") if isinstance(body, dict) else None
                    description = error.get("description") if isinstance(error, dict) else error
                    raise OptimizerError(f"Batch item {index} failed with status {status}: {description}")
                results.append(_first_route(item.get("response")))
            except OptimizerError as exc:
                results.append(exc)
        return results

    def close(self) -> None:
        self.session.close()
