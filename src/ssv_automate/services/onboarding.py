"""Validator onboarding: DKG ceremony, deposit, SSV registration."""

import logging

from ..core.config import Settings, get_settings
from ..core.errors import ConfigurationError, SSVAutomateError
from ..core.types import OnboardingReport, OperatorInfo
from ..data.dkg import DKGRunner
from ..data.files import load_deposit_data, load_keyshares
from ..data.onchain import ContractClient
from ..data.ssv_api import SSVAPIProvider
from ..data.subgraph import SubgraphProvider

logger = logging.getLogger(__name__)


class OnboardingPipeline:
    """
    Creates and activates validators, one cluster per requested operator.

    Each cluster is made of the default operators plus one requested
    operator. Per operator the pipeline:

    1. runs a DKG ceremony at the owner's current nonce
    2. deposits every key of the resulting deposit file
    3. registers the keyshares on the SSV network

    A failure records one problem for that operator and the pipeline moves
    on to the next one.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        api: SSVAPIProvider | None = None,
        subgraph: SubgraphProvider | None = None,
        dkg: DKGRunner | None = None,
        contracts: ContractClient | None = None,
    ):
        self.settings = settings or get_settings()
        self.api = api or SSVAPIProvider(self.settings)
        self.subgraph = subgraph or SubgraphProvider(self.settings)
        self.dkg = dkg or DKGRunner(self.settings)
        self._contracts = contracts

    @property
    def contracts(self) -> ContractClient:
        # Built lazily so a run that fails before any transaction does not
        # need signer settings.
        if self._contracts is None:
            self._contracts = ContractClient(self.settings)
        return self._contracts

    async def load_default_operators(self) -> list[OperatorInfo]:
        operators = []
        for operator_id in self.settings.default_operator_ids:
            operator = await self.api.get_operator(operator_id)
            if operator is None or not operator.has_dkg_endpoint:
                raise ConfigurationError(
                    f"Default operator {operator_id} does not have a DKG endpoint set"
                )
            operators.append(operator)
        logger.info(
            "Fetched default operators info: "
            + ", ".join(f"{op.dkg_address}" for op in operators)
        )
        return operators

    async def run(
        self,
        owner: str,
        operator_ids: list[int],
        withdraw_address: str | None = None,
        validators: int | None = None,
    ) -> OnboardingReport:
        if not owner:
            raise ConfigurationError("No owner address provided")

        if self._contracts is None:
            # Missing signer settings abort the run before any ceremony
            self.settings.require_signer()

        default_operators = await self.load_default_operators()
        default_ids = {op.id for op in default_operators}

        logger.info(f"Obtaining nonce for user {owner}")
        nonce = await self.subgraph.get_owner_nonce(owner)
        logger.info(f"User nonce: {nonce}")

        report = OnboardingReport(owner=owner, start_nonce=nonce, next_nonce=nonce)
        for operator_id in dict.fromkeys(operator_ids):
            if operator_id in default_ids:
                report.problems[operator_id] = (
                    f"Operator {operator_id} is already one of the default operators"
                )
                continue

            try:
                operator = await self.api.get_operator(operator_id)
            except SSVAutomateError as e:
                report.problems[operator_id] = f"Could not fetch Operator {operator_id}:\n{e}"
                continue
            if operator is None or not operator.has_dkg_endpoint:
                message = f"Operator {operator_id} does not have a DKG endpoint set"
                logger.error(message)
                report.problems[operator_id] = message
                continue

            registered = await self._onboard_operator(
                report, owner, nonce, [*default_operators, operator], withdraw_address, validators
            )
            if registered:
                nonce += registered
                report.next_nonce = nonce
                report.completed.append(operator_id)
                logger.info(f"Operator ID {operator_id} is done. Next user nonce is {nonce}")

        logger.info(f"Encountered {len(report.problems)} problem(s)")
        return report

    async def _onboard_operator(
        self,
        report: OnboardingReport,
        owner: str,
        nonce: int,
        operators: list[OperatorInfo],
        withdraw_address: str | None,
        validators: int | None,
    ) -> int:
        """Run all steps for one cluster. Returns the number of registered keys."""
        operator_id = operators[-1].id

        logger.info(
            f"Launching DKG ceremony to create new validator with operators "
            f"{', '.join(str(op.id) for op in operators)}"
        )
        output = None
        try:
            output = await self.dkg.run_ceremony(
                owner, nonce, operators, withdraw_address=withdraw_address, validators=validators
            )
            deposits = load_deposit_data(output.deposit_file)
            shares = load_keyshares(output.keyshares_file).shares
        except SSVAutomateError as e:
            logger.error(f"DKG Ceremony failed for Operator {operator_id}")
            report.problems[operator_id] = f"DKG Ceremony failed for Operator {operator_id}:\n{e}"
            if output is not None:
                self.dkg.set_aside(output.output_dir)
            return 0

        logger.info(f"Depositing to activate {len(deposits)} new validator key(s)")
        try:
            for deposit in deposits:
                await self.contracts.deposit(deposit)
        except SSVAutomateError as e:
            logger.error(f"Could not activate Operator {operator_id}")
            report.problems[operator_id] = f"Could not activate Operator {operator_id}:\n{e}"
            self.dkg.set_aside(output.output_dir)
            return 0

        logger.info("Registering validator on SSV network")
        try:
            snapshot = await self.subgraph.get_cluster_snapshot(
                owner, shares[0].payload.operator_ids
            )
            await self.contracts.register_validators(shares, snapshot)
        except SSVAutomateError as e:
            logger.error(f"Could not register Operator {operator_id}")
            report.problems[operator_id] = f"Could not register Operator {operator_id}:\n{e}"
            self.dkg.set_aside(output.output_dir)
            return 0

        return len(shares)
