"""Operator and cluster lookups against the SSV REST API."""

import logging

import httpx

from ..core.config import Settings, get_settings
from ..core.errors import SSVAPIError
from ..core.types import OperatorInfo, OwnedCluster

logger = logging.getLogger(__name__)

OPERATORS_PAGE_SIZE = 500
CLUSTERS_PAGE_SIZE = 100


class SSVAPIProvider:
    """Fetches operator and cluster data from the SSV API."""

    def __init__(
        self,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.settings = settings or get_settings()
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.settings.ssv_api.rstrip("/"),
            timeout=self.settings.http_timeout_seconds,
            headers={"content-type": "application/json"},
            transport=self._transport,
        )

    async def _get(self, client: httpx.AsyncClient, path: str, params: dict | None = None):
        try:
            response = await client.get(path, params=params)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            raise SSVAPIError(
                f"SSV API request {path} failed: HTTP {e.response.status_code}"
            ) from e
        except httpx.RequestError as e:
            raise SSVAPIError(f"SSV API request {path} failed: {e}") from e
        except ValueError as e:
            raise SSVAPIError(f"SSV API returned invalid JSON for {path}: {e}") from e

    async def get_operator(self, operator_id: int) -> OperatorInfo | None:
        """Get a single operator. Returns None if the API does not know it."""
        async with self._client() as client:
            try:
                response = await client.get(f"/operators/{operator_id}")
            except httpx.RequestError as e:
                raise SSVAPIError(f"Could not fetch operator {operator_id}: {e}") from e

            if response.status_code == 404:
                logger.warning(f"Operator {operator_id} not found")
                return None
            if response.status_code != 200:
                raise SSVAPIError(
                    f"Could not fetch operator {operator_id}: HTTP {response.status_code}"
                )

            try:
                operator = OperatorInfo.model_validate(response.json())
            except ValueError as e:
                raise SSVAPIError(f"Invalid data for operator {operator_id}: {e}") from e
            logger.debug(f"Operator {operator_id} DKG endpoint: {operator.dkg_address}")
            return operator

    async def search_operators(self, search: str) -> list[OperatorInfo]:
        """Get all operators whose name matches `search`, ordered by id."""
        operators: dict[int, OperatorInfo] = {}
        async with self._client() as client:
            page = 1
            while True:
                data = await self._get(
                    client,
                    "/operators",
                    params={
                        "page": page,
                        "perPage": OPERATORS_PAGE_SIZE,
                        "ordering": "id:asc",
                        "search": search,
                    },
                )
                for entry in data.get("operators", []):
                    try:
                        operator = OperatorInfo.model_validate(entry)
                    except ValueError as e:
                        raise SSVAPIError(f"Invalid operator entry in listing: {e}") from e
                    operators[operator.id] = operator
                if not _has_next_page(data, page):
                    break
                page += 1

        logger.debug(f"Found {len(operators)} operators matching {search!r}")
        return sorted(operators.values(), key=lambda op: op.id)

    async def get_clusters_by_owner(self, owner: str) -> list[OwnedCluster]:
        """
        Get all clusters owned by `owner`.

        Walks every page of the listing. Clusters are keyed by id, so an
        entry repeated across pages is returned once.
        """
        clusters: dict[int | str, OwnedCluster] = {}
        async with self._client() as client:
            page = 1
            while True:
                data = await self._get(
                    client,
                    f"/clusters/owner/{owner}",
                    params={
                        "page": page,
                        "perPage": CLUSTERS_PAGE_SIZE,
                        "ordering": "id:asc",
                    },
                )
                for entry in data.get("clusters", []):
                    try:
                        cluster = OwnedCluster.model_validate(entry)
                    except ValueError as e:
                        raise SSVAPIError(f"Invalid cluster entry for {owner}: {e}") from e
                    clusters.setdefault(cluster.id, cluster)
                if not _has_next_page(data, page):
                    break
                page += 1

        logger.debug(f"Account {owner} owns {len(clusters)} clusters")
        return list(clusters.values())


def _has_next_page(data: dict, page: int) -> bool:
    pagination = data.get("pagination") or {}
    pages = pagination.get("pages")
    if pages is None:
        return False
    return page < int(pages)
