"""Operator discovery and DKG endpoint checks."""

import logging

from ..core.config import Settings, get_settings
from ..core.errors import SSVAutomateError
from ..core.types import OperatorInfo, OwnedCluster, PingReport
from ..data.dkg import DKGRunner
from ..data.ssv_api import SSVAPIProvider

logger = logging.getLogger(__name__)


def get_new_operators(operator_ids: list[int], clusters: list[OwnedCluster]) -> list[int]:
    """
    Operators from `operator_ids` that share no cluster with the owner.

    Keeps input order and drops repeated ids, so the result is always a
    subset of the input.
    """
    in_clusters = {op_id for cluster in clusters for op_id in cluster.operators}
    return list(dict.fromkeys(op_id for op_id in operator_ids if op_id not in in_clusters))


class OperatorService:
    """Looks up operators and checks their DKG endpoints."""

    def __init__(
        self,
        settings: Settings | None = None,
        api: SSVAPIProvider | None = None,
        dkg: DKGRunner | None = None,
    ):
        self.settings = settings or get_settings()
        self.api = api or SSVAPIProvider(self.settings)
        self.dkg = dkg or DKGRunner(self.settings)

    async def get_lido_operators(self, search: str | None = None) -> list[OperatorInfo]:
        """Get operators whose name matches the Lido filter."""
        return await self.api.search_operators(search or self.settings.lido_operator_search)

    async def get_operator_ids_in_clusters(self, owner: str) -> set[int]:
        clusters = await self.api.get_clusters_by_owner(owner)
        return {op_id for cluster in clusters for op_id in cluster.operators}

    async def get_new_operators(self, owner: str, operator_ids: list[int]) -> list[int]:
        """Operators from `operator_ids` that have no cluster with `owner` yet."""
        clusters = await self.api.get_clusters_by_owner(owner)
        logger.info(f"Account {owner} has {len(clusters)} clusters")
        return get_new_operators(operator_ids, clusters)

    async def get_new_lido_operators(self, owner: str) -> list[int]:
        """Lido operators that have no cluster with `owner` yet."""
        operators = await self.get_lido_operators()
        return await self.get_new_operators(owner, [op.id for op in operators])

    async def ping_operators(self, operator_ids: list[int]) -> PingReport:
        """Ping the DKG endpoint of each operator."""
        report = PingReport()
        for operator_id in dict.fromkeys(operator_ids):
            try:
                operator = await self.api.get_operator(operator_id)
            except SSVAutomateError as e:
                report.problems[operator_id] = str(e)
                continue

            if operator is None or not operator.has_dkg_endpoint:
                message = f"Operator {operator_id} does not have a DKG endpoint set"
                logger.error(message)
                report.problems[operator_id] = message
                continue

            logger.info(f"Pinging DKG endpoint of {operator_id}")
            try:
                for line in await self.dkg.ping(operator.dkg_address):
                    logger.info(line)
            except SSVAutomateError as e:
                logger.error(f"DKG ping failed for Operator {operator_id}")
                report.problems[operator_id] = str(e)
                continue

            report.healthy.append(operator_id)
        return report
