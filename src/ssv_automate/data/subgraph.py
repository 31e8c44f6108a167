"""GraphQL queries against the SSV network subgraph."""

import logging

import httpx

from ..core.config import Settings, get_settings
from ..core.errors import SubgraphError
from ..core.types import Cluster, ClusterSnapshot

logger = logging.getLogger(__name__)

NONCE_QUERY = """
query accountNonce($owner: String!) {
  account(id: $owner) {
    nonce
  }
}"""

CLUSTER_SNAPSHOT_QUERY = """
query clusterSnapshot($cluster: String!) {
  cluster(id: $cluster) {
    validatorCount
    networkFeeIndex
    index
    active
    balance
  }
}"""

ACCOUNT_CLUSTERS_QUERY = """
query accountClusters($owner: String!) {
  account(id: $owner) {
    clusters {
      id
      validatorCount
      networkFeeIndex
      index
      active
      balance
      operatorIds
      validators {
        id
        active
      }
    }
  }
}"""

VALIDATOR_ADDED_QUERY = """
query validators($txhashes: [Bytes!]) {
  validatorAddeds(where: {transactionHash_in: $txhashes}) {
    publicKey
  }
}"""


def cluster_id(owner: str, operator_ids: list[int]) -> str:
    """Subgraph id of a cluster: lower-cased owner followed by operator ids."""
    return "-".join([owner.lower(), *(str(op_id) for op_id in operator_ids)])


def build_nonce_query(owner: str) -> dict:
    return {"query": NONCE_QUERY, "variables": {"owner": owner.lower()}}


def build_cluster_snapshot_query(owner: str, operator_ids: list[int]) -> dict:
    return {
        "query": CLUSTER_SNAPSHOT_QUERY,
        "variables": {"cluster": cluster_id(owner, operator_ids)},
    }


def build_account_clusters_query(owner: str) -> dict:
    return {"query": ACCOUNT_CLUSTERS_QUERY, "variables": {"owner": owner.lower()}}


def build_validator_added_query(txhashes: list[str]) -> dict:
    """Body of the query for public keys added by the given transactions."""
    return {"query": VALIDATOR_ADDED_QUERY, "variables": {"txhashes": list(txhashes)}}


class SubgraphProvider:
    """Runs queries against the SSV subgraph."""

    def __init__(
        self,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.settings = settings or get_settings()
        self._transport = transport

    async def query(self, body: dict) -> dict:
        """POST a query and return its `data` object."""
        async with httpx.AsyncClient(
            timeout=self.settings.http_timeout_seconds, transport=self._transport
        ) as client:
            try:
                response = await client.post(
                    self.settings.subgraph_api,
                    json=body,
                    headers={"content-type": "application/json"},
                )
                response.raise_for_status()
                result = response.json()
            except httpx.HTTPStatusError as e:
                raise SubgraphError(
                    f"Subgraph request failed: HTTP {e.response.status_code}"
                ) from e
            except httpx.RequestError as e:
                raise SubgraphError(f"Subgraph request failed: {e}") from e
            except ValueError as e:
                raise SubgraphError(f"Subgraph returned invalid JSON: {e}") from e

        if result.get("errors"):
            messages = "; ".join(err.get("message", str(err)) for err in result["errors"])
            raise SubgraphError(f"Subgraph query failed: {messages}")
        if result.get("data") is None:
            raise SubgraphError("Subgraph response is empty")
        return result["data"]

    async def get_owner_nonce(self, owner: str) -> int:
        """Get the registration nonce of `owner`; an unknown owner starts at 0."""
        data = await self.query(build_nonce_query(owner))
        account = data.get("account")
        if account is None:
            logger.info(f"No account for {owner} in subgraph, starting at nonce 0")
            return 0
        nonce = int(account["nonce"])
        logger.debug(f"Owner nonce: {nonce}")
        return nonce

    async def get_cluster_snapshot(
        self, owner: str, operator_ids: list[int]
    ) -> ClusterSnapshot:
        """Get the current snapshot of a cluster, empty if it does not exist yet."""
        data = await self.query(build_cluster_snapshot_query(owner, operator_ids))
        cluster = data.get("cluster")
        if cluster is None:
            logger.debug(f"Cluster {cluster_id(owner, operator_ids)} not found, using empty snapshot")
            return ClusterSnapshot()
        snapshot = ClusterSnapshot.model_validate(cluster)
        logger.debug(f"Cluster snapshot: {snapshot}")
        return snapshot

    async def get_account_clusters(self, owner: str) -> list[Cluster]:
        """Get every cluster owned by `owner`, including its validators."""
        data = await self.query(build_account_clusters_query(owner))
        account = data.get("account")
        if account is None:
            return []
        clusters = [Cluster.model_validate(c) for c in account.get("clusters", [])]
        logger.debug(f"Found {len(clusters)} clusters")
        return clusters

    async def get_pubkeys_from_txhashes(self, txhashes: list[str]) -> list[str]:
        """Get validator public keys registered by the given transactions."""
        data = await self.query(build_validator_added_query(txhashes))
        events = data.get("validatorAddeds") or []
        logger.debug(f"Found {len(events)} pubkeys")
        return [event["publicKey"] for event in events]
