"""Configuration management using pydantic-settings."""

from decimal import Decimal
from functools import lru_cache

from pydantic_settings import BaseSettings

from .errors import ConfigurationError


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Data Sources (Holesky)
    ssv_api: str = "https://api.ssv.network/api/v4/holesky"
    subgraph_api: str = (
        "https://api.studio.thegraph.com/query/71118/ssv-network-holesky/version/latest"
    )
    http_timeout_seconds: float = 30.0

    # RPC / signer
    rpc_endpoint: str = ""
    private_key: str = ""
    network: str = "holesky"

    # Contract Addresses (Holesky)
    ssv_contract: str = "0x38A4794cCEd47d3baf7370CcC43B560D3a1beEFA"
    deposit_contract: str = "0x4242424242424242424242424242424242424242"

    # Transactions
    gas_limit: int = 3_000_000
    ssv_amount: Decimal = Decimal(10)  # SSV tokens funded per registration
    tx_receipt_timeout_seconds: int = 300

    # DKG ceremony
    dkg_image: str = "bloxstaking/ssv-dkg:v2.1.0"
    dkg_timeout_seconds: float = 900
    output_folder: str = "output"
    validators_per_ceremony: int = 1
    default_operator_ids: list[int] = [1, 2, 3]

    # Operator discovery
    lido_operator_search: str = "Lido -"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

    def require_signer(self) -> None:
        """Raise if the settings needed to send transactions are missing."""
        missing = [
            name
            for name, value in (
                ("RPC_ENDPOINT", self.rpc_endpoint),
                ("PRIVATE_KEY", self.private_key),
                ("SSV_CONTRACT", self.ssv_contract),
                ("DEPOSIT_CONTRACT", self.deposit_contract),
            )
            if not value
        ]
        if missing:
            raise ConfigurationError(
                f"Missing required environment variable(s): {', '.join(missing)}"
            )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
