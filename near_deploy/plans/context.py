from dataclasses import dataclass
from typing import Optional

from ..core.near_cli import NearCli
from ..core.rpc_client import NearRpcClient
from ..helpers.account_manager import AccountManager
from ..helpers.run_helpers import DeploymentReport, PlanRunner
from ..utils.config_manager import DeployConfig
from ..utils.exceptions import ConfigurationError


@dataclass
class PlanOptions:
    """Switches that change which optional steps a plan runs"""
    demo: bool = False
    cleanup: Optional[bool] = None
    skip_login: bool = False
    preflight: bool = False


@dataclass
class PlanContext:
    """Everything a plan needs to run its steps"""
    cli: NearCli
    runner: PlanRunner
    accounts: AccountManager
    config: DeployConfig
    options: PlanOptions
    rpc: Optional[NearRpcClient] = None

    @property
    def report(self) -> DeploymentReport:
        return self.runner.report

    @property
    def master_account(self) -> str:
        if not self.config.master_account:
            raise ConfigurationError(
                "No master account configured; pass --master-account or set master_account",
                field="master_account"
            )
        return self.config.master_account

    @property
    def use_rpc(self) -> bool:
        return self.options.preflight and self.rpc is not None and not self.cli.dry_run
