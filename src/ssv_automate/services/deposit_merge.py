"""Merging per-validator deposit files into a single deposit file."""

import logging
from pathlib import Path

from ..core.config import Settings, get_settings
from ..core.errors import DepositMergeError
from ..data.files import (
    default_merge_filename,
    find_validator_dirs,
    merge_deposit_files,
    pair_validator_files,
    write_json,
)
from ..data.subgraph import SubgraphProvider

logger = logging.getLogger(__name__)


class DepositMergeService:
    """Collects deposit data of DKG output folders into one file."""

    def __init__(
        self,
        settings: Settings | None = None,
        subgraph: SubgraphProvider | None = None,
    ):
        self.settings = settings or get_settings()
        self.subgraph = subgraph or SubgraphProvider(self.settings)

    async def merge(
        self,
        folder: Path,
        txhashes: list[str] | None = None,
        output: Path | None = None,
    ) -> tuple[Path, list[dict]]:
        """
        Merge deposit files under `folder` and write them to `output`.

        With `txhashes`, only validators registered by those transactions are
        merged, and every one of them must have an output directory.
        """
        pubkeys = None
        if txhashes:
            pubkeys = await self.subgraph.get_pubkeys_from_txhashes(txhashes)
            logger.info(f"Found {len(pubkeys)} public keys from {len(txhashes)} transactions")
            if not pubkeys:
                raise DepositMergeError("The given transactions did not add any validator")

        logger.info(f"Searching for deposit files in folder: {folder}")
        dirs = find_validator_dirs(Path(folder), pubkeys)
        if not dirs:
            raise DepositMergeError(f"No validator output directories found in {folder}")
        pairs = pair_validator_files(dirs)
        logger.info(f"Found {len(pairs)} deposit files")

        deposits = merge_deposit_files(pairs)
        path = write_json(output or default_merge_filename(), deposits)
        logger.info(f"Wrote {len(deposits)} deposits to {path}")
        return path, deposits
