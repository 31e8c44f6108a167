"""Pytest configuration and shared fixtures."""

from pathlib import Path

import pytest

from ssv_automate.core.config import Settings
from tests.factories import TEST_PRIVATE_KEY


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        _env_file=None,
        ssv_api="https://api.test/api/v4/holesky",
        subgraph_api="https://subgraph.test/query",
        rpc_endpoint="http://localhost:8545",
        private_key=TEST_PRIVATE_KEY,
        ssv_contract="0x38A4794cCEd47d3baf7370CcC43B560D3a1beEFA",
        deposit_contract="0x4242424242424242424242424242424242424242",
        output_folder=str(tmp_path / "output"),
        default_operator_ids=[1, 2, 3],
        validators_per_ceremony=1,
        dkg_timeout_seconds=5,
    )
