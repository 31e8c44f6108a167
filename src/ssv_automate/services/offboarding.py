"""Cluster offboarding: exit, remove or liquidate."""

import logging

from ..core.config import Settings, get_settings
from ..core.errors import SSVAutomateError
from ..core.types import Cluster, OffboardAction, OffboardingReport
from ..data.onchain import ContractClient
from ..data.subgraph import SubgraphProvider

logger = logging.getLogger(__name__)


class OffboardingService:
    """Applies one offboarding action to every cluster of an owner."""

    def __init__(
        self,
        settings: Settings | None = None,
        subgraph: SubgraphProvider | None = None,
        contracts: ContractClient | None = None,
    ):
        self.settings = settings or get_settings()
        self.subgraph = subgraph or SubgraphProvider(self.settings)
        self._contracts = contracts

    @property
    def contracts(self) -> ContractClient:
        if self._contracts is None:
            self._contracts = ContractClient(self.settings)
        return self._contracts

    async def run(self, owner: str, action: OffboardAction) -> OffboardingReport:
        action = OffboardAction(action)
        if self._contracts is None:
            self.settings.require_signer()
        logger.info(f"Performing {action.value} action")

        clusters = await self.subgraph.get_account_clusters(owner)
        report = OffboardingReport(owner=owner, action=action)
        for cluster in clusters:
            logger.info(f"Processing cluster {cluster.id}")

            if cluster.validator_count > 1:
                message = (
                    f"Cluster {cluster.id} has {cluster.validator_count} validators, "
                    "they can't be offboarded one by one"
                )
                logger.error(message)
                report.problems[cluster.id] = message
                continue

            if action is OffboardAction.LIQUIDATE:
                await self._liquidate(report, owner, cluster)
                continue

            for validator in cluster.validators:
                await self._offboard_validator(report, action, cluster, validator.id)

        logger.info(f"Encountered {len(report.problems)} problem(s)")
        return report

    async def _liquidate(self, report: OffboardingReport, owner: str, cluster: Cluster) -> None:
        if not cluster.active:
            logger.info(f"Cluster {cluster.id} is already liquidated")
            return
        logger.info(f"Liquidating cluster {cluster.id}")
        try:
            await self.contracts.liquidate(owner, cluster.operator_ids, cluster.snapshot())
        except SSVAutomateError as e:
            logger.error(f"Error liquidating cluster {cluster.id}")
            report.problems[cluster.id] = f"Error liquidating cluster {cluster.id}:\n{e}"
            return
        report.processed.append(cluster.id)

    async def _offboard_validator(
        self,
        report: OffboardingReport,
        action: OffboardAction,
        cluster: Cluster,
        pubkey: str,
    ) -> None:
        verb = "exiting" if action is OffboardAction.EXIT else "removing"
        logger.info(f"{verb.capitalize()} validator {pubkey} of cluster {cluster.id}")
        try:
            if action is OffboardAction.EXIT:
                await self.contracts.exit_validator(pubkey, cluster.operator_ids)
            else:
                await self.contracts.remove_validator(
                    pubkey, cluster.operator_ids, cluster.snapshot()
                )
        except SSVAutomateError as e:
            logger.error(f"Error {verb} validator {pubkey} of cluster {cluster.id}")
            report.problems[pubkey] = f"Error {verb} validator {pubkey} of cluster {cluster.id}:\n{e}"
            return
        report.processed.append(pubkey)
