"""
Fungible-token deployment plans

ft_dev      deploys to a throwaway dev account created by ``near dev-deploy``
ft_testnet  deploys to an existing account (the master account)

Both initialize the contract with the configured supply and metadata and
read back ``ft_metadata``. With --demo a receiver sub-account is created,
registered for storage and its balance (zero) is checked.
"""

import logging

from ..contracts.args import ContractArgs, FtDefaultInitArgs, FtInitArgs, FungibleTokenMetadata
from ..helpers.account_manager import derive_sub_account
from ..utils.config_manager import FtConfig
from ..utils.exceptions import ConfigurationError, StepFailedError
from . import steps
from .context import PlanContext
from .registry import register_plan

LOG = logging.getLogger(__name__)


def ft_init_args(ft: FtConfig, owner_id: str) -> ContractArgs:
    if ft.init_method == "new_default_meta":
        return FtDefaultInitArgs(owner_id=owner_id, total_supply=ft.total_supply)
    if ft.init_method == "new":
        metadata = FungibleTokenMetadata(
            name=ft.name,
            symbol=ft.symbol,
            decimals=ft.decimals,
            icon=ft.icon,
            reference=ft.reference,
            reference_hash=ft.reference_hash,
        )
        metadata.validate()
        return FtInitArgs(owner_id=owner_id, total_supply=ft.total_supply, metadata=metadata)
    raise ConfigurationError(f"Unsupported FT init method '{ft.init_method}'", field="ft.init_method")


async def initialize_ft(ctx: PlanContext, contract_id: str):
    ft = ctx.config.ft
    args = ft_init_args(ft, contract_id)
    await steps.call(ctx, contract_id, ft.init_method, args, contract_id)
    await steps.view(ctx, contract_id, "ft_metadata", output_key="ft_metadata")


async def transfer_demo(ctx: PlanContext, contract_id: str):
    """Create a receiver, pay its storage on the FT contract and check its balance"""
    demo = ctx.config.demo
    receiver_id = derive_sub_account(demo.receiver_prefix, contract_id)
    await steps.create_account(ctx, receiver_id, contract_id, demo.receiver_initial_balance)
    # The receiver registers itself, so no account_id argument
    await steps.storage_deposit(ctx, contract_id, receiver_id, demo.storage_deposit, empty_args=True)
    await steps.balance_of(ctx, contract_id, receiver_id)


@register_plan("ft_dev", description="dev-deploy the FT contract to a throwaway account", requires_master=False)
async def ft_dev(ctx: PlanContext):
    ctx.cli.reset_dev_account()

    await ctx.runner.run_step(
        "dev-deploy",
        lambda: ctx.cli.dev_deploy(ctx.config.artifact_path(ctx.config.ft.wasm))
    )

    async def read_contract_name():
        return ctx.cli.read_dev_account()

    contract_id = await ctx.runner.run_step("read neardev/dev-account.env", read_contract_name)
    if contract_id is None:
        raise StepFailedError("No dev account available, cannot continue", step="dev-deploy")
    ctx.report.outputs["contract_id"] = contract_id
    LOG.info(f"Dev contract account: {contract_id}")

    await initialize_ft(ctx, contract_id)

    if ctx.options.demo:
        await transfer_demo(ctx, contract_id)


@register_plan("ft_testnet", description="Deploy the FT contract to the master account")
async def ft_testnet(ctx: PlanContext):
    await steps.login(ctx)

    contract_id = ctx.master_account
    ctx.report.outputs["contract_id"] = contract_id
    await steps.preflight(ctx, contract_id)

    await steps.deploy(ctx, ctx.config.ft.wasm, contract_id)
    await initialize_ft(ctx, contract_id)

    if ctx.options.demo:
        await transfer_demo(ctx, contract_id)
