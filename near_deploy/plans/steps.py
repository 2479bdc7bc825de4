"""
Reusable plan steps

Each helper runs exactly one near invocation through the plan runner, so
every step shows up in the deployment report and a failure halts the plan.
"""

import logging
from typing import Any, Optional

from ..core.near_cli import CallArgs
from ..core.rpc_client import EMPTY_CODE_HASH
from ..contracts.args import AccountIdArgs, StorageDepositArgs
from ..helpers.account_manager import derive_sub_account, is_sub_account_of, validate_account_id
from ..utils.common import yocto_to_near
from ..utils.exceptions import RpcError
from .context import PlanContext

LOG = logging.getLogger(__name__)


async def login(ctx: PlanContext):
    if ctx.options.skip_login:
        ctx.runner.skip_step("login", "--skip-login given")
        return
    await ctx.runner.run_step("login", ctx.cli.login)


async def preflight(ctx: PlanContext, account_id: str):
    """Check the node is reachable and log the master account balance"""
    if not ctx.use_rpc:
        return

    async def check():
        status = await ctx.rpc.status()
        account = await ctx.rpc.view_account(account_id)
        LOG.info(
            f"Node {status.get('chain_id')} at block {status.get('sync_info', {}).get('latest_block_height')}, "
            f"{account_id} holds {yocto_to_near(account['amount'])} NEAR"
        )
        return account

    await ctx.runner.run_step(f"preflight {account_id}", check, retryable=True)


def sub_account_for(ctx: PlanContext, prefix: str) -> str:
    sub_id = derive_sub_account(prefix, ctx.master_account)
    LOG.info(f"Sub-account: {sub_id}")
    return sub_id


async def create_account(ctx: PlanContext, account_id: str, master_id: str, initial_balance) -> bool:
    """Create account_id under master_id. Returns False if it already existed."""
    validate_account_id(account_id)
    if not is_sub_account_of(account_id, master_id):
        LOG.warning(f"{account_id} is not a direct sub-account of {master_id}; near may refuse to create it")

    name = f"create-account {account_id}"
    if ctx.use_rpc:
        # A failed lookup is recorded and creation is attempted anyway
        exists = await ctx.runner.run_step(
            f"check {account_id} exists",
            lambda: ctx.rpc.account_exists(account_id),
            critical=False,
            retryable=True
        )
        if exists:
            ctx.runner.skip_step(name, "account already exists")
            return False

    result = await ctx.runner.run_step(
        name,
        lambda: ctx.cli.create_account(account_id, master_id, initial_balance)
    )
    if result is None:
        return False
    if not result.dry_run:
        ctx.accounts.record_created(account_id, master_id, initial_balance)
    return True


async def storage_deposit(
    ctx: PlanContext,
    contract_id: str,
    payer_id: str,
    amount,
    account_id: Optional[str] = None,
    empty_args: bool = False
):
    """Pre-pay storage on contract_id. empty_args sends '' instead of {}."""
    args = None if empty_args else StorageDepositArgs(account_id=account_id)
    target = account_id or payer_id
    return await ctx.runner.run_step(
        f"storage_deposit {target} on {contract_id}",
        lambda: ctx.cli.call(contract_id, "storage_deposit", args, payer_id, amount=amount)
    )


async def deploy(ctx: PlanContext, wasm: str, account_id: str):
    path = ctx.config.artifact_path(wasm)
    result = await ctx.runner.run_step(
        f"deploy {path.name} to {account_id}",
        lambda: ctx.cli.deploy(path, account_id)
    )
    if result is not None and ctx.use_rpc:
        await verify_code(ctx, account_id)
    return result


async def verify_code(ctx: PlanContext, account_id: str):
    async def check():
        code_hash = await ctx.rpc.view_code_hash(account_id)
        if code_hash == EMPTY_CODE_HASH:
            raise RpcError(f"No contract code on {account_id} after deploy")
        LOG.info(f"{account_id} code hash: {code_hash}")
        return code_hash

    await ctx.runner.run_step(f"verify code on {account_id}", check, retryable=True)


async def call(
    ctx: PlanContext,
    contract_id: str,
    method: str,
    args: CallArgs,
    account_id: str,
    amount=None,
    deposit=None,
    critical: bool = True
):
    return await ctx.runner.run_step(
        f"call {contract_id}.{method}",
        lambda: ctx.cli.call(contract_id, method, args, account_id, amount=amount, deposit=deposit),
        critical=critical
    )


async def view(
    ctx: PlanContext,
    contract_id: str,
    method: str,
    args: CallArgs = None,
    output_key: Optional[str] = None
) -> Any:
    """Run a view call; non-critical since it changes nothing"""
    result = await ctx.runner.run_step(
        f"view {contract_id}.{method}",
        lambda: ctx.cli.view(contract_id, method, args),
        critical=False,
        retryable=True
    )
    if result is not None and output_key:
        ctx.report.outputs[output_key] = result.parsed
    return result


async def balance_of(ctx: PlanContext, contract_id: str, account_id: str):
    return await view(ctx, contract_id, "ft_balance_of", AccountIdArgs(account_id),
                      output_key=f"ft_balance_of:{account_id}")


async def delete_account(ctx: PlanContext, account_id: str, beneficiary_id: str):
    result = await ctx.runner.run_step(
        f"delete {account_id}",
        lambda: ctx.cli.delete(account_id, beneficiary_id)
    )
    if result is not None and not result.dry_run:
        ctx.accounts.record_deleted(account_id, beneficiary_id)
    return result
