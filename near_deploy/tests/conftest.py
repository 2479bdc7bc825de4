"""
Pytest fixtures for near-deploy tests.

The ``fake_near`` fixture patches subprocess.run inside the CLI wrapper and
records every argv, so plans can be executed end to end without the near
binary being installed.
"""

import subprocess
from pathlib import Path
from typing import Dict, List
from unittest.mock import patch

import pytest

from near_deploy.core.near_cli import NearCli
from near_deploy.helpers.account_manager import AccountManager
from near_deploy.helpers.run_helpers import DeploymentReport, PlanRunner
from near_deploy.plans import PlanContext, PlanOptions
from near_deploy.utils.config_manager import ConfigManager

MASTER = "metagallery.testnet"


class FakeNear:
    """Stands in for subprocess.run; answers by near subcommand"""

    def __init__(self, cwd: Path):
        self.cwd = cwd
        self.calls: List[List[str]] = []
        self.failures: Dict[str, int] = {}
        self.timeouts: Dict[str, int] = {}
        self.outputs: Dict[str, str] = {}
        self.dev_account = "dev-1650000000000-12345678901234"

    def fail(self, subcommand: str, returncode: int = 1):
        self.failures[subcommand] = returncode

    def time_out(self, subcommand: str, times: int = 1):
        self.timeouts[subcommand] = times

    def __call__(self, argv, **kwargs):
        self.calls.append(list(argv))
        subcommand = argv[1]
        if self.timeouts.get(subcommand):
            self.timeouts[subcommand] -= 1
            raise subprocess.TimeoutExpired(argv, kwargs.get("timeout"))
        if subcommand in self.failures:
            return subprocess.CompletedProcess(argv, self.failures[subcommand], "", f"{subcommand} failed\n")
        if subcommand == "dev-deploy":
            neardev = Path(kwargs["cwd"]) / "neardev"
            neardev.mkdir(exist_ok=True)
            (neardev / "dev-account.env").write_text(f"CONTRACT_NAME={self.dev_account}\n")
        stdout = self.outputs.get(subcommand, "")
        return subprocess.CompletedProcess(argv, 0, stdout, "")

    def subcommands(self) -> List[str]:
        return [c[1] for c in self.calls]

    def find(self, subcommand: str, *contains: str) -> List[str]:
        for call in self.calls:
            if call[1] == subcommand and all(c in call for c in contains):
                return call
        raise AssertionError(f"no '{subcommand}' call containing {contains}: {self.calls}")


@pytest.fixture
def workdir(tmp_path) -> Path:
    out = tmp_path / "out"
    out.mkdir()
    for name in ("metag_ft.wasm", "metag_nft.wasm", "nft_contract.wasm"):
        (out / name).write_bytes(b"\x00asm\x01\x00\x00\x00")
    return tmp_path


@pytest.fixture
def fake_near(workdir):
    fake = FakeNear(workdir)
    with patch("near_deploy.core.near_cli.subprocess.run", side_effect=fake):
        yield fake


@pytest.fixture
def deploy_config(workdir):
    config = ConfigManager(environ={}).load()
    return config.with_overrides(master_account=MASTER, working_dir=str(workdir))


@pytest.fixture
def make_context(workdir, deploy_config):
    def factory(dry_run=False, keep_going=False, retry=None, **option_kwargs):
        option_kwargs.setdefault("skip_login", False)
        report = DeploymentReport("test", deploy_config.network_id, dry_run=dry_run)
        cli = NearCli(cwd=workdir, dry_run=dry_run, env={})
        return PlanContext(
            cli=cli,
            runner=PlanRunner(report, retry=retry, keep_going=keep_going),
            accounts=AccountManager(str(workdir / "output" / "accounts.json")),
            config=deploy_config,
            options=PlanOptions(**option_kwargs),
        )
    return factory
