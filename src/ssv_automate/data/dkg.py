"""Running the ssv-dkg container."""

import asyncio
import json
import logging
from pathlib import Path

from ..core.config import Settings, get_settings
from ..core.errors import DepositFileError, DKGCeremonyError, DKGTimeoutError
from ..core.types import CeremonyOutput, OperatorInfo
from .files import DEPOSIT_FILE_PATTERN, KEYSHARES_FILE_PATTERN, find_shallowest

logger = logging.getLogger(__name__)

CONTAINER_DATA_DIR = "/data"


def build_init_command(
    image: str,
    output_dir: Path,
    owner: str,
    nonce: int,
    withdraw_address: str,
    operators: list[OperatorInfo],
    network: str,
    validators: int,
) -> list[str]:
    """Argument vector for an `ssv-dkg init` ceremony, operators in ascending id order."""
    operators = sorted(operators, key=lambda op: op.id)
    operators_info = json.dumps(
        [
            {"id": op.id, "public_key": op.public_key, "ip": op.dkg_address}
            for op in operators
        ],
        separators=(",", ":"),
    )
    return [
        "docker", "run", "--rm",
        "-v", f"{Path(output_dir).resolve()}:{CONTAINER_DATA_DIR}",
        image,
        "init",
        "--owner", owner,
        "--nonce", str(nonce),
        "--withdrawAddress", withdraw_address,
        "--operatorIDs", ",".join(str(op.id) for op in operators),
        "--operatorsInfo", operators_info,
        "--network", network,
        "--validators", str(validators),
        "--logFilePath", f"{CONTAINER_DATA_DIR}/debug.log",
        "--outputPath", CONTAINER_DATA_DIR,
    ]  # fmt: skip


def build_ping_command(image: str, address: str) -> list[str]:
    return ["docker", "run", "--rm", image, "ping", "--ip", address]


def _last_line(text: str) -> str:
    lines = [line for line in text.splitlines() if line.strip()]
    return lines[-1] if lines else ""


def parse_output_announcement(stdout: str, output_dir: Path) -> CeremonyOutput | None:
    """
    Read output paths announced on the last stdout line.

    The line is a JSON object with `deposit_data` and `keyshares` paths as
    seen inside the container; they are mapped back to `output_dir`.
    """
    try:
        announced = json.loads(_last_line(stdout))
    except ValueError:
        return None
    if not isinstance(announced, dict):
        return None
    if "deposit_data" not in announced or "keyshares" not in announced:
        return None

    def to_host(path: str) -> Path:
        p = Path(path)
        if p.is_absolute() and p.parts[:2] == ("/", CONTAINER_DATA_DIR.strip("/")):
            return Path(output_dir) / Path(*p.parts[2:])
        return Path(output_dir) / p

    return CeremonyOutput(
        output_dir=output_dir,
        deposit_file=to_host(announced["deposit_data"]),
        keyshares_file=to_host(announced["keyshares"]),
    )


class DKGRunner:
    """Runs ssv-dkg ceremonies and pings through docker."""

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()

    def ceremony_dir(self, owner: str, nonce: int) -> Path:
        """Dedicated output directory of the ceremony for `owner` at `nonce`."""
        return Path(self.settings.output_folder) / f"{owner.lower()}-{nonce}"

    async def _run(self, cmd: list[str]) -> tuple[str, str]:
        logger.debug(f"Running: {' '.join(cmd)}")
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise DKGCeremonyError(f"Could not start {cmd[0]}: {e}") from e

        try:
            stdout_b, stderr_b = await asyncio.wait_for(
                proc.communicate(), timeout=self.settings.dkg_timeout_seconds
            )
        except asyncio.TimeoutError as e:
            proc.kill()
            await proc.wait()
            raise DKGTimeoutError(
                f"{cmd[0]} did not finish within {self.settings.dkg_timeout_seconds}s"
            ) from e

        stdout = stdout_b.decode(errors="replace")
        stderr = stderr_b.decode(errors="replace")
        for line in stderr.splitlines():
            logger.debug(f"dkg: {line}")
        for line in stdout.splitlines():
            logger.debug(f"dkg: {line}")

        if proc.returncode != 0:
            raise DKGCeremonyError(
                f"Command exited with status {proc.returncode}: {_last_line(stderr) or _last_line(stdout)}",
                output=stderr or stdout,
            )
        last = _last_line(stdout)
        if "ERROR" in last:
            raise DKGCeremonyError(last, output=stdout)
        return stdout, stderr

    async def run_ceremony(
        self,
        owner: str,
        nonce: int,
        operators: list[OperatorInfo],
        withdraw_address: str | None = None,
        validators: int | None = None,
    ) -> CeremonyOutput:
        """Run a DKG ceremony and return the files it produced."""
        missing = [op.id for op in operators if not op.has_dkg_endpoint]
        if missing:
            raise DKGCeremonyError(
                f"Operator(s) {', '.join(map(str, missing))} have no DKG endpoint"
            )

        output_dir = self.ceremony_dir(owner, nonce)
        if output_dir.exists() and find_shallowest(output_dir, DEPOSIT_FILE_PATTERN):
            raise DKGCeremonyError(
                f"Ceremony outputs for nonce {nonce} already exist in {output_dir}; "
                "they may have been deposited already"
            )
        output_dir.mkdir(parents=True, exist_ok=True)

        cmd = build_init_command(
            image=self.settings.dkg_image,
            output_dir=output_dir,
            owner=owner,
            nonce=nonce,
            withdraw_address=withdraw_address or owner,
            operators=operators,
            network=self.settings.network,
            validators=validators or self.settings.validators_per_ceremony,
        )
        logger.info(
            f"Launching DKG ceremony with operators {', '.join(str(op.id) for op in operators)}"
        )
        try:
            stdout, _ = await self._run(cmd)
            output = parse_output_announcement(stdout, output_dir) or self.locate_outputs(
                output_dir
            )
            for path in (output.deposit_file, output.keyshares_file):
                if not path.is_file():
                    raise DKGCeremonyError(
                        f"Ceremony output {path} does not exist", output=stdout
                    )
        except (DKGCeremonyError, DepositFileError):
            self.set_aside(output_dir)
            raise
        logger.debug(f"Deposit file: {output.deposit_file}")
        logger.debug(f"Keyshares file: {output.keyshares_file}")
        return output

    def set_aside(self, output_dir: Path) -> Path | None:
        """
        Rename a ceremony directory whose keys will not be registered.

        The nonce was not consumed, so the next ceremony may use the same
        directory name. The files are kept as `<dir>-failed-<n>`.
        """
        output_dir = Path(output_dir)
        if not output_dir.exists():
            return None
        attempt = 1
        while output_dir.with_name(f"{output_dir.name}-failed-{attempt}").exists():
            attempt += 1
        target = output_dir.with_name(f"{output_dir.name}-failed-{attempt}")
        output_dir.rename(target)
        logger.warning(f"Moved outputs of failed ceremony to {target}")
        return target

    def locate_outputs(self, output_dir: Path) -> CeremonyOutput:
        """Find the deposit and keyshares files inside a ceremony directory."""
        deposit = find_shallowest(output_dir, DEPOSIT_FILE_PATTERN)
        keyshares = find_shallowest(output_dir, KEYSHARES_FILE_PATTERN)
        if deposit is None or keyshares is None:
            raise DKGCeremonyError(
                f"DKG ceremony did not generate a new validator in {output_dir}"
            )
        return CeremonyOutput(
            output_dir=output_dir, deposit_file=deposit, keyshares_file=keyshares
        )

    async def ping(self, address: str) -> list[str]:
        """Ping a DKG endpoint, returning the tool's output lines."""
        stdout, _ = await self._run(build_ping_command(self.settings.dkg_image, address))
        return stdout.splitlines()
