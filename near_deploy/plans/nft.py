"""
NFT deployment plans

Both plans provision ``<prefix>.<master>``, pre-pay its storage on the
master account's contract, deploy the NFT artifact to it and initialize
it with the sub-account as owner.

nft_testnet           nft.<master>, keeps the account
nft_contract_testnet  nft-contract.<master>, deletes the account at the end
                      and returns its balance to the master (--no-cleanup keeps it)
"""

import logging

from ..contracts.args import NftInitArgs, NftMintArgs, TokenMetadata
from ..utils.config_manager import NftConfig
from . import steps
from .context import PlanContext
from .registry import register_plan

LOG = logging.getLogger(__name__)


def mint_args(ctx: PlanContext, receiver_id: str) -> NftMintArgs:
    demo = ctx.config.demo
    return NftMintArgs(
        token_id=demo.token_id,
        receiver_id=receiver_id,
        token_metadata=TokenMetadata(
            title=demo.title,
            description=demo.description,
            media=demo.media,
            copies=demo.copies,
        ),
    )


async def deploy_nft(ctx: PlanContext, nft: NftConfig, cleanup: bool):
    await steps.login(ctx)

    master_id = ctx.master_account
    sub_id = steps.sub_account_for(ctx, nft.prefix)
    ctx.report.outputs["contract_id"] = sub_id
    await steps.preflight(ctx, master_id)

    await steps.create_account(ctx, sub_id, master_id, nft.initial_balance)
    await steps.storage_deposit(ctx, master_id, master_id, nft.storage_deposit, account_id=sub_id)
    await steps.deploy(ctx, nft.wasm, sub_id)
    await steps.call(ctx, sub_id, nft.init_method, NftInitArgs(owner_id=sub_id), sub_id)

    if ctx.options.demo:
        # Minted by the master, which also receives the token
        await steps.call(
            ctx, sub_id, "nft_mint", mint_args(ctx, master_id), master_id,
            deposit=ctx.config.demo.mint_deposit
        )
        await steps.view(
            ctx, sub_id, "nft_token", {"token_id": ctx.config.demo.token_id},
            output_key="nft_token"
        )

    if cleanup:
        await steps.delete_account(ctx, sub_id, master_id)


@register_plan("nft_testnet", description="Create nft.<master> and deploy the NFT contract to it")
async def nft_testnet(ctx: PlanContext):
    cleanup = ctx.options.cleanup if ctx.options.cleanup is not None else False
    await deploy_nft(ctx, ctx.config.nft, cleanup)


@register_plan(
    "nft_contract_testnet",
    description="Create nft-contract.<master>, deploy and initialize, then delete it"
)
async def nft_contract_testnet(ctx: PlanContext):
    cleanup = ctx.options.cleanup if ctx.options.cleanup is not None else True
    await deploy_nft(ctx, ctx.config.nft_contract, cleanup)
