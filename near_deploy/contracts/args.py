"""
Request objects for contract calls

Each object serializes to the JSON argument of one contract method via
to_dict(). U128 amounts are rendered as base-10 strings, which is how
NEAR contracts expect 128-bit integers over JSON.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union

from ..utils.exceptions import ArgumentsError

FT_METADATA_SPEC = "ft-1.0.0"
MAX_U128 = 2 ** 128 - 1

DEFAULT_TOTAL_SUPPLY = 1_000_000_000_000_000


def to_u128_string(value: Union[int, str], field_name: str = "amount") -> str:
    """Validate and render a U128 value as a decimal string"""
    if isinstance(value, bool):
        raise ArgumentsError(f"{field_name} must be an integer, got bool")
    if isinstance(value, str):
        if not value.isdigit():
            raise ArgumentsError(f"{field_name} must be a base-10 integer string, got {value!r}")
        number = int(value)
    elif isinstance(value, int):
        number = value
    else:
        raise ArgumentsError(f"{field_name} must be an integer, got {type(value).__name__}")
    if number < 0 or number > MAX_U128:
        raise ArgumentsError(f"{field_name} {number} is outside the U128 range")
    return str(number)


class ContractArgs:
    """Base class for request objects"""

    def to_dict(self) -> Dict[str, Any]:
        raise NotImplementedError

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), separators=(",", ":"))


@dataclass
class FungibleTokenMetadata(ContractArgs):
    """NEP-148 fungible token metadata"""
    name: str
    symbol: str
    decimals: int
    spec: str = FT_METADATA_SPEC
    icon: Optional[str] = None
    reference: Optional[str] = None
    reference_hash: Optional[str] = None

    def validate(self) -> None:
        if self.spec != FT_METADATA_SPEC:
            raise ArgumentsError(f"Unsupported metadata spec {self.spec!r}, expected {FT_METADATA_SPEC!r}")
        if not self.name:
            raise ArgumentsError("Token name must not be empty")
        if not self.symbol:
            raise ArgumentsError("Token symbol must not be empty")
        if isinstance(self.decimals, bool) or not isinstance(self.decimals, int) or not 0 <= self.decimals <= 255:
            raise ArgumentsError(f"decimals must be an integer in 0..255, got {self.decimals!r}")
        if (self.reference is None) != (self.reference_hash is None):
            raise ArgumentsError("reference and reference_hash must be provided together")

    def to_dict(self) -> Dict[str, Any]:
        self.validate()
        result = {
            "spec": self.spec,
            "name": self.name,
            "symbol": self.symbol,
            "decimals": self.decimals,
        }
        for key in ("icon", "reference", "reference_hash"):
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        return result


META_GALLERY_FT_METADATA = FungibleTokenMetadata(
    name="Meta Gallery token",
    symbol="META",
    decimals=8,
)


@dataclass
class FtInitArgs(ContractArgs):
    """Arguments of the FT ``new`` initializer"""
    owner_id: str
    total_supply: Union[int, str]
    metadata: FungibleTokenMetadata

    def to_dict(self) -> Dict[str, Any]:
        return {
            "owner_id": self.owner_id,
            "total_supply": to_u128_string(self.total_supply, "total_supply"),
            "metadata": self.metadata.to_dict(),
        }


@dataclass
class FtDefaultInitArgs(ContractArgs):
    """Arguments of the FT ``new_default_meta`` initializer"""
    owner_id: str
    total_supply: Union[int, str]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "owner_id": self.owner_id,
            "total_supply": to_u128_string(self.total_supply, "total_supply"),
        }


@dataclass
class NftInitArgs(ContractArgs):
    """Arguments of the NFT default-metadata initializers"""
    owner_id: str

    def to_dict(self) -> Dict[str, Any]:
        return {"owner_id": self.owner_id}


@dataclass
class TokenMetadata(ContractArgs):
    """NEP-177 token metadata, only the fields the mint demo uses"""
    title: Optional[str] = None
    description: Optional[str] = None
    media: Optional[str] = None
    copies: Optional[int] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        result = {}
        for key in ("title", "description", "media", "copies"):
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.copies is not None and (not isinstance(self.copies, int) or self.copies < 1):
            raise ArgumentsError(f"copies must be a positive integer, got {self.copies!r}")
        result.update(self.extra)
        return result


@dataclass
class NftMintArgs(ContractArgs):
    token_id: str
    receiver_id: str
    token_metadata: TokenMetadata

    def to_dict(self) -> Dict[str, Any]:
        if not self.token_id:
            raise ArgumentsError("token_id must not be empty")
        return {
            "token_id": self.token_id,
            "receiver_id": self.receiver_id,
            "token_metadata": self.token_metadata.to_dict(),
        }


@dataclass
class StorageDepositArgs(ContractArgs):
    """storage_deposit arguments; no account_id registers the caller"""
    account_id: Optional[str] = None
    registration_only: Optional[bool] = None

    def to_dict(self) -> Dict[str, Any]:
        result = {}
        if self.account_id is not None:
            result["account_id"] = self.account_id
        if self.registration_only is not None:
            result["registration_only"] = self.registration_only
        return result


@dataclass
class AccountIdArgs(ContractArgs):
    """Single account_id argument, e.g. ft_balance_of or storage_balance_of"""
    account_id: str

    def to_dict(self) -> Dict[str, Any]:
        return {"account_id": self.account_id}


@dataclass
class FtTransferArgs(ContractArgs):
    receiver_id: str
    amount: Union[int, str]
    memo: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "receiver_id": self.receiver_id,
            "amount": to_u128_string(self.amount, "amount"),
        }
        if self.memo is not None:
            result["memo"] = self.memo
        return result


def serialize_args(args: Union[ContractArgs, Dict[str, Any], None]) -> str:
    """Serialize call arguments for the near CLI; None becomes an empty argument"""
    if args is None:
        return ""
    if isinstance(args, ContractArgs):
        return args.to_json()
    if isinstance(args, dict):
        return json.dumps(args, separators=(",", ":"))
    raise ArgumentsError(f"Unsupported argument type: {type(args).__name__}")
