"""Reading, locating and merging DKG ceremony output files."""

import json
import logging
import re
from datetime import datetime, timezone
from pathlib import Path

from pydantic import BaseModel, ValidationError

from ..core.errors import DepositFileError, DepositMergeError
from ..core.types import DepositData, KeySharesFile

logger = logging.getLogger(__name__)

DEPOSIT_FILE_PATTERN = "deposit_data*.json"
KEYSHARES_FILE_PATTERN = "keyshares*.json"

# ssv-dkg writes one directory per validator, named "<nonce>-<0xpubkey>"
VALIDATOR_DIR_RE = re.compile(r"^(?P<nonce>\d+)-(?P<pubkey>(0x)?[0-9a-fA-F]{96})$")
# Ceremony directories set aside after a failed onboarding step
FAILED_CEREMONY_RE = re.compile(r"-failed-\d+$")


def normalize_pubkey(pubkey: str) -> str:
    """Lower-case hex without 0x prefix, for comparisons."""
    pubkey = pubkey.lower()
    return pubkey[2:] if pubkey.startswith("0x") else pubkey


def _read_json(path: Path):
    try:
        return json.loads(Path(path).read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise DepositFileError(f"File not found: {path}") from e
    except json.JSONDecodeError as e:
        raise DepositFileError(f"Invalid JSON in {path}: {e}") from e


def load_deposit_data(path: Path) -> list[DepositData]:
    """Load a deposit_data.json file (a JSON array of deposits)."""
    raw = _read_json(path)
    if not isinstance(raw, list) or not raw:
        raise DepositFileError(f"{path} does not contain a list of deposits")
    try:
        return [DepositData.model_validate(entry) for entry in raw]
    except ValidationError as e:
        raise DepositFileError(f"Invalid deposit data in {path}: {e}") from e


def load_keyshares(path: Path) -> KeySharesFile:
    """Load a keyshares.json file."""
    raw = _read_json(path)
    try:
        keyshares = KeySharesFile.model_validate(raw)
    except ValidationError as e:
        raise DepositFileError(f"Invalid keyshares in {path}: {e}") from e
    if not keyshares.shares:
        raise DepositFileError(f"{path} does not contain any shares")
    return keyshares


def find_shallowest(directory: Path, pattern: str) -> Path | None:
    """
    Find the file matching `pattern` closest to `directory`.

    When a ceremony creates several validators, ssv-dkg writes an aggregated
    file at the top and one per validator below it; the aggregated one wins.
    Two candidates at the same depth are ambiguous.
    """
    matches = [p for p in Path(directory).rglob(pattern) if p.is_file()]
    if not matches:
        return None

    def depth(p: Path) -> int:
        return len(p.relative_to(directory).parts)

    best = min(depth(p) for p in matches)
    candidates = sorted(p for p in matches if depth(p) == best)
    if len(candidates) > 1:
        names = ", ".join(str(p) for p in candidates)
        raise DepositFileError(f"Ambiguous {pattern} files in {directory}: {names}")
    return candidates[0]


class ValidatorFiles(BaseModel):
    """Deposit and keyshares files of one validator directory."""

    directory: Path
    pubkey: str
    deposit_file: Path
    keyshares_file: Path


def find_validator_dirs(folder: Path, pubkeys: list[str] | None = None) -> list[Path]:
    """
    Find validator output directories under `folder`.

    If `pubkeys` is given, only directories for those keys are returned and a
    key without a directory is an error. Otherwise directories inside failed
    ceremonies are skipped.
    """
    folder = Path(folder)
    if not folder.is_dir():
        raise DepositFileError(f"Folder does not exist: {folder}")

    dirs = sorted(
        p for p in folder.rglob("*") if p.is_dir() and VALIDATOR_DIR_RE.match(p.name)
    )
    if pubkeys is None:
        return [
            d
            for d in dirs
            if not any(FAILED_CEREMONY_RE.search(part) for part in d.relative_to(folder).parts)
        ]

    wanted = {normalize_pubkey(pk) for pk in pubkeys}
    selected = [
        d for d in dirs if normalize_pubkey(VALIDATOR_DIR_RE.match(d.name)["pubkey"]) in wanted
    ]
    found = {normalize_pubkey(VALIDATOR_DIR_RE.match(d.name)["pubkey"]) for d in selected}
    missing = sorted(wanted - found)
    if missing:
        raise DepositMergeError(
            f"No output directory found for {len(missing)} public key(s): "
            + ", ".join(f"0x{pk}" for pk in missing)
        )
    return selected


def pair_validator_files(dirs: list[Path]) -> list[ValidatorFiles]:
    """
    Pair deposit and keyshares files directory by directory.

    Every directory must hold exactly one of each, otherwise nothing is
    returned and the offending directories are reported.
    """
    pairs = []
    problems = []
    for directory in dirs:
        deposits = sorted(directory.glob(DEPOSIT_FILE_PATTERN))
        keyshares = sorted(directory.glob(KEYSHARES_FILE_PATTERN))
        if len(deposits) != 1 or len(keyshares) != 1:
            problems.append(
                f"{directory}: {len(deposits)} deposit file(s), {len(keyshares)} keyshares file(s)"
            )
            continue
        pairs.append(
            ValidatorFiles(
                directory=directory,
                pubkey=VALIDATOR_DIR_RE.match(directory.name)["pubkey"],
                deposit_file=deposits[0],
                keyshares_file=keyshares[0],
            )
        )

    if problems:
        raise DepositMergeError(
            "Deposit and keyshares files do not pair up:\n" + "\n".join(problems)
        )
    return pairs


def merge_deposit_files(pairs: list[ValidatorFiles]) -> list[dict]:
    """Merge the deposits of each pair into one list ordered by owner nonce."""
    entries = []
    for pair in pairs:
        keyshares = load_keyshares(pair.keyshares_file)
        nonce = keyshares.shares[0].data.owner_nonce
        for deposit in load_deposit_data(pair.deposit_file):
            entries.append((nonce, deposit.model_dump(exclude_none=True)))

    entries.sort(key=lambda item: item[0])
    return [deposit for _, deposit in entries]


def default_merge_filename(now: datetime | None = None) -> Path:
    now = now or datetime.now(timezone.utc)
    return Path(f"deposit_data-{now.strftime('%Y-%m-%dT%H:%M:%SZ')}.json")


def write_json(path: Path, data) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")
    logger.debug(f"Wrote {path}")
    return path
