"""Data models for SSV automation."""

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field


class OperatorInfo(BaseModel):
    """Operator record from the SSV API."""

    id: int
    public_key: str
    dkg_address: str | None = None
    name: str | None = None

    @property
    def has_dkg_endpoint(self) -> bool:
        return bool(self.dkg_address)


class OwnedCluster(BaseModel):
    """Cluster entry from the SSV API clusters-by-owner listing."""

    id: int | str
    operators: list[int]


class ClusterSnapshot(BaseModel):
    """Cluster state passed to SSVNetwork calls.

    An empty snapshot (all zeroes, active) is the correct input for a cluster
    that has never been created.
    """

    model_config = ConfigDict(populate_by_name=True)

    validator_count: int = Field(0, alias="validatorCount")
    network_fee_index: int = Field(0, alias="networkFeeIndex")
    index: int = 0
    active: bool = True
    balance: int = 0

    def as_tuple(self) -> tuple[int, int, int, bool, int]:
        """Struct order expected by the SSVNetwork ABI."""
        return (
            self.validator_count,
            self.network_fee_index,
            self.index,
            self.active,
            self.balance,
        )


class ClusterValidator(BaseModel):
    """Validator entry of a subgraph cluster; id is the public key."""

    id: str
    active: bool


class Cluster(BaseModel):
    """Cluster record from the SSV subgraph."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    validator_count: int = Field(alias="validatorCount")
    network_fee_index: int = Field(alias="networkFeeIndex")
    index: int
    active: bool
    balance: int
    operator_ids: list[int] = Field(alias="operatorIds")
    validators: list[ClusterValidator] = []

    def snapshot(self) -> ClusterSnapshot:
        return ClusterSnapshot(
            validator_count=self.validator_count,
            network_fee_index=self.network_fee_index,
            index=self.index,
            active=self.active,
            balance=self.balance,
        )


class DepositData(BaseModel):
    """One entry of a deposit_data.json array (standard deposit-cli format)."""

    model_config = ConfigDict(extra="allow")

    pubkey: str
    withdrawal_credentials: str
    amount: int  # gwei
    signature: str
    deposit_data_root: str
    deposit_message_root: str | None = None
    fork_version: str | None = None
    network_name: str | None = None
    deposit_cli_version: str | None = None


class KeyShareOperator(BaseModel):
    id: int
    operator_key: str = Field(alias="operatorKey")


class KeyShareData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    owner_nonce: int = Field(alias="ownerNonce")
    owner_address: str = Field(alias="ownerAddress")
    public_key: str = Field(alias="publicKey")
    operators: list[KeyShareOperator] = []


class KeySharePayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    public_key: str = Field(alias="publicKey")
    operator_ids: list[int] = Field(alias="operatorIds")
    shares_data: str = Field(alias="sharesData")


class KeyShare(BaseModel):
    """A single validator share set produced by a DKG ceremony."""

    data: KeyShareData
    payload: KeySharePayload


class KeySharesFile(BaseModel):
    """Contents of a keyshares.json file."""

    model_config = ConfigDict(populate_by_name=True)

    version: str | None = None
    created_at: str | None = Field(None, alias="createdAt")
    shares: list[KeyShare]


class CeremonyOutput(BaseModel):
    """Files written by one DKG ceremony."""

    output_dir: Path
    deposit_file: Path
    keyshares_file: Path


class OffboardAction(str, Enum):
    EXIT = "exit"
    REMOVE = "remove"
    LIQUIDATE = "liquidate"


class OnboardingReport(BaseModel):
    """Outcome of an onboarding run."""

    owner: str
    start_nonce: int
    next_nonce: int
    completed: list[int] = []
    problems: dict[int, str] = {}


class OffboardingReport(BaseModel):
    """Outcome of an offboarding run, problems keyed by cluster id or pubkey."""

    owner: str
    action: OffboardAction
    processed: list[str] = []
    problems: dict[str, str] = {}


class PingReport(BaseModel):
    """Outcome of pinging operators' DKG endpoints."""

    healthy: list[int] = []
    problems: dict[int, str] = {}
