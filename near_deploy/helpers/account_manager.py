import asyncio
import json
import logging
import os
import re
from typing import Dict, List, Optional

from ..utils.common import format_near_amount, format_timestamp
from ..utils.exceptions import AccountIdError

LOG = logging.getLogger(__name__)

MIN_ACCOUNT_ID_LEN = 2
MAX_ACCOUNT_ID_LEN = 64

# Lowercase alphanumeric parts separated by '-' or '_', joined by '.'
ACCOUNT_ID_PATTERN = re.compile(r"^(([a-z\d]+[\-_])*[a-z\d]+\.)*([a-z\d]+[\-_])*[a-z\d]+$")


def is_valid_account_id(account_id: str) -> bool:
    """Check NEAR account id rules"""
    if not isinstance(account_id, str):
        return False
    if not MIN_ACCOUNT_ID_LEN <= len(account_id) <= MAX_ACCOUNT_ID_LEN:
        return False
    return ACCOUNT_ID_PATTERN.match(account_id) is not None


def validate_account_id(account_id: str) -> str:
    """Return account_id unchanged or raise AccountIdError"""
    if not isinstance(account_id, str) or not account_id:
        raise AccountIdError("Account id must be a non-empty string", account_id=account_id)
    if len(account_id) < MIN_ACCOUNT_ID_LEN or len(account_id) > MAX_ACCOUNT_ID_LEN:
        raise AccountIdError(
            f"Account id '{account_id}' must be {MIN_ACCOUNT_ID_LEN}-{MAX_ACCOUNT_ID_LEN} characters long",
            account_id=account_id
        )
    if account_id != account_id.lower():
        raise AccountIdError(f"Account id '{account_id}' must be lowercase", account_id=account_id)
    if not ACCOUNT_ID_PATTERN.match(account_id):
        raise AccountIdError(f"Account id '{account_id}' contains invalid characters or separators",
                             account_id=account_id)
    return account_id


def is_sub_account_of(account_id: str, parent_id: str) -> bool:
    """True when account_id is a direct sub-account of parent_id"""
    suffix = "." + parent_id
    if not account_id.endswith(suffix):
        return False
    prefix = account_id[:-len(suffix)]
    return bool(prefix) and "." not in prefix


def derive_sub_account(prefix: str, parent_id: str) -> str:
    """Build ``prefix.parent_id``, e.g. nft.metagallery.testnet"""
    validate_account_id(parent_id)
    if not prefix or "." in prefix:
        raise AccountIdError(f"Sub-account prefix '{prefix}' must be a single non-empty part",
                             account_id=prefix)
    return validate_account_id(f"{prefix}.{parent_id}")


class AccountManager:
    """Tracks accounts created during a deployment run"""

    def __init__(self, output_path: Optional[str] = None):
        self.output_path = output_path
        self.accounts: Dict[str, Dict] = {}

    def record_created(self, account_id: str, parent_id: str, initial_balance) -> Dict:
        info = {
            "account_id": account_id,
            "parent_id": parent_id,
            "initial_balance": format_near_amount(initial_balance),
            "created_at": format_timestamp(),
            "deleted": False,
        }
        self.accounts[account_id] = info
        LOG.info(f"Created account '{account_id}' (parent: {parent_id}, balance: {info['initial_balance']} NEAR)")
        return info

    def record_deleted(self, account_id: str, beneficiary_id: str):
        info = self.accounts.setdefault(account_id, {"account_id": account_id})
        info["deleted"] = True
        info["beneficiary_id"] = beneficiary_id
        info["deleted_at"] = format_timestamp()
        LOG.info(f"Deleted account '{account_id}', balance sent to {beneficiary_id}")

    def live_accounts(self) -> List[str]:
        """Accounts created in this run and not deleted yet"""
        return [a for a, info in self.accounts.items() if not info.get("deleted")]

    def save(self, file_path: str = None):
        """Write the tracked accounts to JSON"""
        file_path = file_path or self.output_path
        if not file_path:
            return
        data = {
            "generated_at": format_timestamp(),
            "accounts": list(self.accounts.values()),
        }
        directory = os.path.dirname(file_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(file_path, 'w') as f:
            json.dump(data, f, indent=2)
        LOG.info(f"Saved account ledger to: {file_path}")

    async def save_async(self, file_path: str = None):
        loop = asyncio.get_event_loop()
        await loop.run_in_executor(None, self.save, file_path)
