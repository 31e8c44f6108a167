"""Builders for DKG output files and API payloads used across tests."""

import json
from pathlib import Path

OWNER = "0xaA184b86B4cdb747F4A3BF6e6FCd5e27c1d92c5c"
# First well-known development account key
TEST_PRIVATE_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"


def make_pubkey(seed: int) -> str:
    return "0x" + f"{seed:02x}" * 48


def deposit_entry(pubkey: str) -> dict:
    return {
        "pubkey": pubkey.removeprefix("0x"),
        "withdrawal_credentials": "01" + "00" * 11 + OWNER[2:].lower(),
        "amount": 32000000000,
        "signature": "ab" * 96,
        "deposit_message_root": "cd" * 32,
        "deposit_data_root": "ef" * 32,
        "fork_version": "01017000",
        "network_name": "holesky",
        "deposit_cli_version": "2.7.0",
    }


def keyshares_content(pubkeys: list[str], nonce: int, operator_ids=(1, 2, 3, 4)) -> dict:
    return {
        "version": "v1.1.0",
        "createdAt": "2024-05-01T10:00:00Z",
        "shares": [
            {
                "data": {
                    "ownerNonce": nonce + i,
                    "ownerAddress": OWNER,
                    "publicKey": pubkey,
                    "operators": [
                        {"id": op_id, "operatorKey": f"key{op_id}"} for op_id in operator_ids
                    ],
                },
                "payload": {
                    "publicKey": pubkey,
                    "operatorIds": list(operator_ids),
                    "sharesData": "0x" + "11" * 40,
                },
            }
            for i, pubkey in enumerate(pubkeys)
        ],
    }


def write_ceremony_files(directory: Path, pubkeys: list[str], nonce: int) -> None:
    directory.mkdir(parents=True, exist_ok=True)
    (directory / "deposit_data.json").write_text(
        json.dumps([deposit_entry(pk) for pk in pubkeys])
    )
    (directory / "keyshares.json").write_text(json.dumps(keyshares_content(pubkeys, nonce)))


def make_validator_dir(root: Path, nonce: int, pubkey: str) -> Path:
    """Write a `<nonce>-<pubkey>` directory as produced by ssv-dkg."""
    directory = root / f"{nonce}-{pubkey}"
    write_ceremony_files(directory, [pubkey], nonce)
    return directory


def operator_payload(operator_id: int, dkg_address: str | None = "https://dkg.example:3030") -> dict:
    return {
        "id": operator_id,
        "name": f"Lido - Operator {operator_id}",
        "public_key": f"pubkey-{operator_id}",
        "dkg_address": dkg_address,
    }
