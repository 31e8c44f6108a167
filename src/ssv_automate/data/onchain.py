"""Sending deposit and SSVNetwork transactions via Web3."""

import logging
from decimal import Decimal

from eth_account import Account
from web3 import Web3
from web3.exceptions import ContractLogicError, TimeExhausted, Web3Exception

from ..core.config import Settings, get_settings
from ..core.contracts import DEPOSIT_CONTRACT_ABI, SSV_NETWORK_ABI
from ..core.errors import TransactionError
from ..core.types import ClusterSnapshot, DepositData, KeyShare

logger = logging.getLogger(__name__)


def hex_to_bytes(value: str) -> bytes:
    try:
        return bytes.fromhex(value[2:] if value.startswith("0x") else value)
    except ValueError as e:
        raise TransactionError(f"Invalid hex value {value!r}: {e}") from e


class ContractClient:
    """Signs and sends transactions to the deposit and SSVNetwork contracts."""

    def __init__(self, settings: Settings | None = None, w3: Web3 | None = None):
        self.settings = settings or get_settings()
        self.settings.require_signer()
        self.w3 = w3 or Web3(Web3.HTTPProvider(self.settings.rpc_endpoint))
        self.account = Account.from_key(self.settings.private_key)

        # Initialize contracts
        self.deposit_contract = self.w3.eth.contract(
            address=Web3.to_checksum_address(self.settings.deposit_contract),
            abi=DEPOSIT_CONTRACT_ABI,
        )
        self.ssv_network = self.w3.eth.contract(
            address=Web3.to_checksum_address(self.settings.ssv_contract),
            abi=SSV_NETWORK_ABI,
        )

    @property
    def address(self) -> str:
        return self.account.address

    def _send(self, call, value: int = 0) -> str:
        """Build, sign and send a contract call, then wait for its receipt."""
        name = call.fn_name
        try:
            tx = call.build_transaction(
                {
                    "from": self.account.address,
                    "nonce": self.w3.eth.get_transaction_count(self.account.address),
                    "gas": self.settings.gas_limit,
                    "value": value,
                }
            )
            signed = self.account.sign_transaction(tx)
            tx_hash = self.w3.eth.send_raw_transaction(signed.raw_transaction)
            logger.debug(f"{name} sent: {Web3.to_hex(tx_hash)}")
            receipt = self.w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=self.settings.tx_receipt_timeout_seconds
            )
        except ContractLogicError as e:
            raise TransactionError(f"{name} reverted: {e}") from e
        except TimeExhausted as e:
            raise TransactionError(f"{name} was not mined in time: {e}") from e
        except (ValueError, Web3Exception) as e:
            # JSON-RPC errors (insufficient funds, nonce too low, ...)
            raise TransactionError(f"{name} was rejected: {e}") from e

        if receipt["status"] != 1:
            raise TransactionError(f"{name} failed in transaction {Web3.to_hex(tx_hash)}")
        return Web3.to_hex(tx_hash)

    async def deposit(self, deposit: DepositData) -> str:
        """Deposit to activate a validator key."""
        call = self.deposit_contract.functions.deposit(
            hex_to_bytes(deposit.pubkey),
            hex_to_bytes(deposit.withdrawal_credentials),
            hex_to_bytes(deposit.signature),
            hex_to_bytes(deposit.deposit_data_root),
        )
        value = Web3.to_wei(deposit.amount, "gwei")
        logger.debug(f"Activating validator {deposit.pubkey} on {deposit.network_name}")
        tx_hash = self._send(call, value=value)
        logger.info(f"Deposited {Web3.from_wei(value, 'ether')} ETH: {tx_hash}")
        return tx_hash

    async def register_validators(
        self,
        shares: list[KeyShare],
        snapshot: ClusterSnapshot,
        amount: Decimal | None = None,
    ) -> str:
        """Register validator shares; several shares go in one bulk call."""
        if not shares:
            raise TransactionError("No shares to register")
        amount_wei = Web3.to_wei(
            amount if amount is not None else self.settings.ssv_amount, "ether"
        )
        operator_ids = shares[0].payload.operator_ids
        if len(shares) == 1:
            payload = shares[0].payload
            call = self.ssv_network.functions.registerValidator(
                hex_to_bytes(payload.public_key),
                operator_ids,
                hex_to_bytes(payload.shares_data),
                amount_wei,
                snapshot.as_tuple(),
            )
        else:
            call = self.ssv_network.functions.bulkRegisterValidator(
                [hex_to_bytes(s.payload.public_key) for s in shares],
                operator_ids,
                [hex_to_bytes(s.payload.shares_data) for s in shares],
                amount_wei,
                snapshot.as_tuple(),
            )
        tx_hash = self._send(call)
        logger.info(f"Registered {len(shares)} validator(s): {tx_hash}")
        return tx_hash

    async def exit_validator(self, pubkey: str, operator_ids: list[int]) -> str:
        call = self.ssv_network.functions.exitValidator(hex_to_bytes(pubkey), operator_ids)
        tx_hash = self._send(call)
        logger.info(f"Exited validator {pubkey}: {tx_hash}")
        return tx_hash

    async def remove_validator(
        self, pubkey: str, operator_ids: list[int], snapshot: ClusterSnapshot
    ) -> str:
        call = self.ssv_network.functions.removeValidator(
            hex_to_bytes(pubkey), operator_ids, snapshot.as_tuple()
        )
        tx_hash = self._send(call)
        logger.info(f"Removed validator {pubkey}: {tx_hash}")
        return tx_hash

    async def liquidate(
        self, owner: str, operator_ids: list[int], snapshot: ClusterSnapshot
    ) -> str:
        call = self.ssv_network.functions.liquidate(
            Web3.to_checksum_address(owner), operator_ids, snapshot.as_tuple()
        )
        tx_hash = self._send(call)
        logger.info(f"Liquidated cluster {owner}-{'-'.join(map(str, operator_ids))}: {tx_hash}")
        return tx_hash
