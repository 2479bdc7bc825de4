"""
Wrapper around the external ``near`` command-line tool

Every operation builds an argv list (no shell, no string interpolation of
JSON) and runs it through subprocess in a worker thread so the async plan
runner is not blocked. A non-zero exit status is returned in the
CommandResult rather than raised; the runner decides whether to halt.

Usage:
    cli = NearCli(network_id="testnet")
    result = await cli.deploy("out/metag_ft.wasm", "metagallery.testnet")
    result.check()
"""

import asyncio
import json
import logging
import os
import shutil
import subprocess
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from ..contracts.args import ContractArgs, serialize_args
from ..utils.common import format_near_amount, parse_env_file
from ..utils.exceptions import (
    ArgumentsError,
    ArtifactError,
    CommandFailedError,
    CommandTimeoutError,
    EnvFileError,
    NearCliNotFoundError,
)

LOG = logging.getLogger(__name__)

DEV_ACCOUNT_DIR = "neardev"
DEV_ACCOUNT_ENV = "dev-account.env"
DRY_RUN_DEV_ACCOUNT = "dev-0000000000000-00000000000000"

CallArgs = Union[ContractArgs, Dict[str, Any], None]


@dataclass
class CommandResult:
    """Outcome of one near invocation"""
    argv: List[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""
    duration: float = 0.0
    dry_run: bool = False
    parsed: Any = None

    @property
    def success(self) -> bool:
        return self.returncode == 0

    def check(self) -> "CommandResult":
        """Raise CommandFailedError if the command failed"""
        if not self.success:
            detail = (self.stderr or self.stdout).strip()
            raise CommandFailedError(
                f"'{' '.join(self.argv[:3])}' exited with status {self.returncode}"
                + (f": {detail.splitlines()[-1]}" if detail else ""),
                argv=self.argv,
                returncode=self.returncode,
                stderr=self.stderr
            )
        return self

    def to_dict(self) -> Dict[str, Any]:
        return {
            "argv": self.argv,
            "returncode": self.returncode,
            "stdout": self.stdout,
            "stderr": self.stderr,
            "duration": self.duration,
            "dry_run": self.dry_run,
            "parsed": self.parsed,
        }


def parse_view_output(output: str) -> Any:
    """
    Extract the value printed by ``near view``.

    near prints a ``View call: contract.method(args)`` line followed by the
    result formatted as a JavaScript literal (single quotes, bare keys).
    Strict JSON is tried first, then YAML flow syntax, which accepts that
    literal form. Returns None when nothing parseable follows.
    """
    lines = output.splitlines()
    start = 0
    for i, line in enumerate(lines):
        if line.startswith("View call:"):
            start = i + 1
    body = "\n".join(lines[start:]).strip()
    if not body:
        return None
    try:
        return json.loads(body)
    except json.JSONDecodeError:
        pass
    try:
        return yaml.safe_load(body)
    except yaml.YAMLError:
        LOG.debug(f"Could not parse view output: {body!r}")
        return None


class NearCli:
    """Builds and runs near CLI commands"""

    def __init__(
        self,
        binary: str = "near",
        network_id: str = "testnet",
        node_url: Optional[str] = None,
        helper_url: Optional[str] = None,
        cwd: Optional[Union[str, Path]] = None,
        timeout: float = 300,
        dry_run: bool = False,
        env: Optional[Dict[str, str]] = None
    ):
        self.binary = binary
        self.network_id = network_id
        self.node_url = node_url
        self.helper_url = helper_url
        self.cwd = Path(cwd) if cwd else Path.cwd()
        self.timeout = timeout
        self.dry_run = dry_run
        self._env = env
        self.history: List[CommandResult] = []

    # ------------------------------------------------------------------
    # argv construction
    # ------------------------------------------------------------------

    def _global_flags(self) -> List[str]:
        flags = ["--networkId", self.network_id]
        if self.node_url:
            flags.extend(["--nodeUrl", self.node_url])
        return flags

    def build_login(self) -> List[str]:
        return [self.binary, "login"] + self._global_flags()

    def build_dev_deploy(self, wasm_file: Union[str, Path], helper_url: Optional[str] = None) -> List[str]:
        argv = [self.binary, "dev-deploy", "--wasmFile", str(wasm_file)]
        helper = helper_url or self.helper_url
        if helper:
            argv.extend(["--helperUrl", helper])
        return argv + self._global_flags()

    def build_deploy(
        self,
        wasm_file: Union[str, Path],
        account_id: str,
        init_function: Optional[str] = None,
        init_args: CallArgs = None
    ) -> List[str]:
        argv = [self.binary, "deploy", "--wasmFile", str(wasm_file), "--accountId", account_id]
        if init_function:
            argv.extend(["--initFunction", init_function, "--initArgs", serialize_args(init_args) or "{}"])
        elif init_args is not None:
            raise ArgumentsError("init_args given without init_function")
        return argv + self._global_flags()

    def build_call(
        self,
        contract_id: str,
        method: str,
        args: CallArgs,
        account_id: str,
        amount=None,
        deposit=None,
        gas: Optional[int] = None
    ) -> List[str]:
        if amount is not None and deposit is not None:
            raise ArgumentsError("Use either amount or deposit, not both")
        argv = [self.binary, "call", contract_id, method, serialize_args(args), "--accountId", account_id]
        if amount is not None:
            argv.extend(["--amount", format_near_amount(amount)])
        if deposit is not None:
            argv.extend(["--deposit", format_near_amount(deposit)])
        if gas is not None:
            argv.extend(["--gas", str(int(gas))])
        return argv + self._global_flags()

    def build_view(self, contract_id: str, method: str, args: CallArgs = None) -> List[str]:
        argv = [self.binary, "view", contract_id, method]
        if args is not None:
            argv.append(serialize_args(args))
        return argv + self._global_flags()

    def build_create_account(self, account_id: str, master_account: str, initial_balance) -> List[str]:
        return [
            self.binary, "create-account", account_id,
            "--masterAccount", master_account,
            "--initialBalance", format_near_amount(initial_balance),
        ] + self._global_flags()

    def build_delete(self, account_id: str, beneficiary_id: str) -> List[str]:
        return [self.binary, "delete", account_id, beneficiary_id] + self._global_flags()

    def build_send(self, sender_id: str, receiver_id: str, amount) -> List[str]:
        return [self.binary, "send", sender_id, receiver_id, format_near_amount(amount)] + self._global_flags()

    def build_state(self, account_id: str) -> List[str]:
        return [self.binary, "state", account_id] + self._global_flags()

    # ------------------------------------------------------------------
    # execution
    # ------------------------------------------------------------------

    def _environment(self) -> Dict[str, str]:
        env = dict(self._env) if self._env is not None else os.environ.copy()
        env["NEAR_ENV"] = self.network_id
        return env

    def _run_sync(self, argv: List[str], interactive: bool = False) -> CommandResult:
        LOG.info(f"$ {' '.join(argv)}")
        if self.dry_run:
            result = CommandResult(argv=argv, returncode=0, dry_run=True)
            self.history.append(result)
            return result

        start = time.time()
        try:
            completed = subprocess.run(
                argv,
                cwd=str(self.cwd),
                env=self._environment(),
                capture_output=not interactive,
                text=True,
                timeout=None if interactive else self.timeout,
            )
        except FileNotFoundError as e:
            raise NearCliNotFoundError(
                f"near binary '{self.binary}' not found; install near-cli or set near_binary",
                argv=argv,
                cause=e
            )
        except subprocess.TimeoutExpired as e:
            raise CommandTimeoutError(
                f"'{' '.join(argv[:3])}' did not finish within {self.timeout}s",
                argv=argv,
                timeout=self.timeout,
                cause=e
            )

        result = CommandResult(
            argv=argv,
            returncode=completed.returncode,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
            duration=time.time() - start,
        )
        if result.stdout:
            LOG.debug(f"stdout:\n{result.stdout.rstrip()}")
        if result.stderr:
            LOG.debug(f"stderr:\n{result.stderr.rstrip()}")
        if not result.success:
            LOG.error(f"Command exited with status {result.returncode}")
        self.history.append(result)
        return result

    async def run(self, argv: List[str], interactive: bool = False) -> CommandResult:
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(None, self._run_sync, argv, interactive)

    # ------------------------------------------------------------------
    # operations
    # ------------------------------------------------------------------

    def check_artifact(self, wasm_file: Union[str, Path]) -> Path:
        """Ensure a wasm artifact exists before uploading it"""
        path = Path(wasm_file)
        if not path.is_absolute():
            path = self.cwd / path
        if self.dry_run:
            if not path.exists():
                LOG.warning(f"Artifact {path} does not exist (dry run, continuing)")
            return path
        if not path.is_file():
            raise ArtifactError(f"Contract artifact not found: {path}", path=str(path))
        if path.stat().st_size == 0:
            raise ArtifactError(f"Contract artifact is empty: {path}", path=str(path))
        return path

    async def login(self) -> CommandResult:
        return await self.run(self.build_login(), interactive=True)

    async def dev_deploy(self, wasm_file: Union[str, Path], helper_url: Optional[str] = None) -> CommandResult:
        self.check_artifact(wasm_file)
        return await self.run(self.build_dev_deploy(wasm_file, helper_url))

    async def deploy(
        self,
        wasm_file: Union[str, Path],
        account_id: str,
        init_function: Optional[str] = None,
        init_args: CallArgs = None
    ) -> CommandResult:
        self.check_artifact(wasm_file)
        return await self.run(self.build_deploy(wasm_file, account_id, init_function, init_args))

    async def call(
        self,
        contract_id: str,
        method: str,
        args: CallArgs,
        account_id: str,
        amount=None,
        deposit=None,
        gas: Optional[int] = None
    ) -> CommandResult:
        return await self.run(self.build_call(contract_id, method, args, account_id, amount, deposit, gas))

    async def view(self, contract_id: str, method: str, args: CallArgs = None) -> CommandResult:
        result = await self.run(self.build_view(contract_id, method, args))
        if result.success and not result.dry_run:
            result.parsed = parse_view_output(result.stdout)
        return result

    async def create_account(self, account_id: str, master_account: str, initial_balance) -> CommandResult:
        return await self.run(self.build_create_account(account_id, master_account, initial_balance))

    async def delete(self, account_id: str, beneficiary_id: str) -> CommandResult:
        return await self.run(self.build_delete(account_id, beneficiary_id))

    async def send(self, sender_id: str, receiver_id: str, amount) -> CommandResult:
        return await self.run(self.build_send(sender_id, receiver_id, amount))

    async def state(self, account_id: str) -> CommandResult:
        result = await self.run(self.build_state(account_id))
        if result.success and not result.dry_run:
            result.parsed = parse_view_output(result.stdout)
        return result

    # ------------------------------------------------------------------
    # dev account file
    # ------------------------------------------------------------------

    @property
    def dev_account_dir(self) -> Path:
        return self.cwd / DEV_ACCOUNT_DIR

    def reset_dev_account(self) -> None:
        """Remove neardev/ so dev-deploy provisions a fresh account"""
        if self.dry_run:
            LOG.info(f"Would remove {self.dev_account_dir}")
            return
        if self.dev_account_dir.exists():
            shutil.rmtree(self.dev_account_dir)
            LOG.info(f"Removed {self.dev_account_dir}")

    def read_dev_account(self) -> str:
        """Account id written by dev-deploy to neardev/dev-account.env"""
        if self.dry_run:
            return DRY_RUN_DEV_ACCOUNT
        env_path = self.dev_account_dir / DEV_ACCOUNT_ENV
        values = parse_env_file(env_path)
        contract_name = values.get("CONTRACT_NAME")
        if not contract_name:
            raise EnvFileError(f"CONTRACT_NAME missing from {env_path}", path=str(env_path))
        return contract_name
