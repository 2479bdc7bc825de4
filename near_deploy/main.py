#!/usr/bin/env python3
import argparse
import asyncio
import logging
import sys
from contextlib import AsyncExitStack
from pathlib import Path

from .core.near_cli import NearCli
from .core.rpc_client import NearRpcClient
from .helpers.account_manager import AccountManager, validate_account_id
from .helpers.run_helpers import DeploymentReport, PlanRunner
from .plans import PlanContext, PlanOptions, get_available_choices, get_plan, list_plans
from .utils.async_retry import build_step_retry
from .utils.config_manager import ConfigManager
from .utils.exceptions import ConfigurationError, NearDeployError, StepFailedError
from .utils.logging import setup_logging

LOG = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Deploy and initialize NEAR fungible-token and NFT contracts via the near CLI"
    )
    parser.add_argument("--plan", choices=get_available_choices(),
                        help="Deployment plan to run")
    parser.add_argument("--list-plans", action="store_true",
                        help="List available plans and exit")
    parser.add_argument("--config", default=None,
                        help="Path to YAML/JSON deployment configuration")
    parser.add_argument("--master-account", default=None,
                        help="Account that owns the deployment (e.g. metagallery.testnet)")
    parser.add_argument("--network-id", default=None,
                        help="NEAR network id (testnet, mainnet, ...)")
    parser.add_argument("--node-url", default=None,
                        help="RPC node url passed to the near CLI")
    parser.add_argument("--rpc-url", default=None,
                        help="RPC url used for --preflight checks")
    parser.add_argument("--artifacts-dir", default=None,
                        help="Directory holding compiled *.wasm artifacts")
    parser.add_argument("--working-dir", default=None,
                        help="Directory the near CLI runs in (neardev/ lives here)")
    parser.add_argument("--near-binary", default=None,
                        help="near executable to invoke")
    parser.add_argument("--demo", action="store_true",
                        help="Run demonstration calls after deployment")
    parser.add_argument("--cleanup", dest="cleanup", action="store_const", const=True, default=None,
                        help="Delete the created sub-account at the end")
    parser.add_argument("--no-cleanup", dest="cleanup", action="store_const", const=False,
                        help="Keep the created sub-account")
    parser.add_argument("--skip-login", action="store_true",
                        help="Do not run 'near login' (credentials already present)")
    parser.add_argument("--keep-going", action="store_true",
                        help="Record failed steps and continue instead of halting")
    parser.add_argument("--dry-run", action="store_true",
                        help="Print near commands without running them")
    parser.add_argument("--preflight", action="store_true",
                        help="Query RPC before and after steps (account existence, code hash)")
    parser.add_argument("--retries", type=int, default=None,
                        help="Extra attempts for read-only steps (views, RPC checks) that time out")
    parser.add_argument("--log-level", default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                        help="Logging level")
    parser.add_argument("--log-file", default=None,
                        help="Path to log file")
    parser.add_argument("--output-dir", default="output",
                        help="Output directory for deployment reports")
    return parser


def print_plans():
    for entry in list_plans():
        print(f"{entry.name:<24} {entry.description}")


async def run_plan(args) -> int:
    """Load configuration, run the selected plan and write reports"""
    try:
        config = ConfigManager().load(args.config)
        config = config.with_overrides(
            master_account=args.master_account,
            network_id=args.network_id,
            node_url=args.node_url,
            rpc_url=args.rpc_url,
            artifacts_dir=args.artifacts_dir,
            working_dir=args.working_dir,
            near_binary=args.near_binary,
            retries=args.retries,
        )
        entry = get_plan(args.plan)
        if entry.requires_master:
            if not config.master_account:
                raise ConfigurationError(
                    f"Plan '{entry.name}' needs a master account (--master-account)",
                    field="master_account"
                )
            validate_account_id(config.master_account)
    except NearDeployError as e:
        LOG.error(f"Configuration error: {e}")
        return EXIT_CONFIG

    output_dir = Path(args.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    report = DeploymentReport(entry.name, config.network_id, dry_run=args.dry_run)
    runner = PlanRunner(report, retry=build_step_retry(config.retries), keep_going=args.keep_going)
    accounts = AccountManager(str(output_dir / "accounts_created.json"))
    cli = NearCli(
        binary=config.near_binary,
        network_id=config.network_id,
        node_url=config.node_url,
        helper_url=config.helper_url,
        cwd=config.working_dir,
        timeout=config.command_timeout,
        dry_run=args.dry_run,
    )
    options = PlanOptions(
        demo=args.demo,
        cleanup=args.cleanup,
        skip_login=args.skip_login,
        preflight=args.preflight,
    )

    LOG.info(f"Running plan '{entry.name}' on {config.network_id}"
             + (" (dry run)" if args.dry_run else ""))

    try:
        async with AsyncExitStack() as stack:
            rpc = None
            if args.preflight and config.rpc_url:
                rpc = await stack.enter_async_context(NearRpcClient(config.rpc_url))
            elif args.preflight:
                LOG.warning("--preflight given but no rpc_url configured, skipping RPC checks")

            ctx = PlanContext(cli=cli, runner=runner, accounts=accounts, config=config, options=options, rpc=rpc)
            try:
                await entry.func(ctx)
                report.finish()
            except StepFailedError as e:
                report.finish(error=str(e))
                LOG.error(f"Plan halted: {e.message}")
            except NearDeployError as e:
                report.finish(error=str(e))
                LOG.error(f"Plan failed: {e}")
    finally:
        # Reports and the account ledger are written even if the plan crashed
        if report.finished_at is None:
            report.finish(error="Plan aborted by an unexpected error")
        log_summary(report, accounts)
        report.save(str(output_dir / "deploy_results.json"))
        if accounts.accounts:
            await accounts.save_async()

    return EXIT_OK if report.success else EXIT_FAILED


def log_summary(report: DeploymentReport, accounts: AccountManager):
    summary = report.summary()
    LOG.info("=" * 60)
    LOG.info(f"PLAN {report.plan_name}: {'SUCCESS' if report.success else 'FAILED'}")
    LOG.info(f"Steps: {summary['total']}  passed: {summary['passed']}  "
             f"skipped: {summary['skipped']}  failed: {summary['failed']}")
    for step in report.failed_steps:
        LOG.error(f"  {step.name}: {step.error}")
    for key, value in report.outputs.items():
        LOG.info(f"  {key}: {value}")
    live = accounts.live_accounts()
    if live and not report.success:
        LOG.warning(f"Accounts left behind by this run: {', '.join(live)}")
    LOG.info("=" * 60)


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.list_plans:
        print_plans()
        return EXIT_OK
    if not args.plan:
        parser.error("--plan is required (see --list-plans)")

    setup_logging(args.log_level, args.log_file)
    return asyncio.run(run_plan(args))


if __name__ == "__main__":
    sys.exit(main())
