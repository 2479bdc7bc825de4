"""
Configuration manager with JSON schema validation

Loads a deployment configuration from YAML or JSON, merges it over the
built-in defaults, applies NEAR_DEPLOY_* environment overrides and
validates the result with jsonschema before turning it into dataclasses.

Precedence, lowest to highest: defaults, config file, environment,
command-line flags (applied by the caller via DeployConfig.with_overrides).
"""

import copy
import json
import logging
import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import jsonschema
import yaml

from ..contracts.args import DEFAULT_TOTAL_SUPPLY, META_GALLERY_FT_METADATA
from .exceptions import ConfigurationError, ErrorCodes

LOG = logging.getLogger(__name__)

ENV_PREFIX = "NEAR_DEPLOY_"

DEFAULT_SCHEMA_PATH = Path(__file__).parent.parent / "configs" / "schemas" / "deploy_schema.json"

DEFAULT_CONFIG: Dict[str, Any] = {
    "network_id": "testnet",
    "node_url": None,
    "rpc_url": "https://rpc.testnet.near.org",
    "helper_url": "https://near-contract-helper.onrender.com",
    "master_account": None,
    "near_binary": "near",
    "artifacts_dir": "out",
    "working_dir": ".",
    "command_timeout": 300,
    "retries": 0,
    "ft": {
        "wasm": "metag_ft.wasm",
        "init_method": "new",
        "total_supply": str(DEFAULT_TOTAL_SUPPLY),
        "name": META_GALLERY_FT_METADATA.name,
        "symbol": META_GALLERY_FT_METADATA.symbol,
        "decimals": META_GALLERY_FT_METADATA.decimals,
        "icon": None,
        "reference": None,
        "reference_hash": None,
    },
    "nft": {
        "wasm": "metag_nft.wasm",
        "prefix": "nft",
        "init_method": "new_default_meta",
        "initial_balance": 100,
        "storage_deposit": 50,
    },
    "nft_contract": {
        "wasm": "nft_contract.wasm",
        "prefix": "nft-contract",
        "init_method": "new_default_metadata",
        "initial_balance": 5,
        "storage_deposit": 50,
    },
    "demo": {
        "receiver_prefix": "cuong",
        "receiver_initial_balance": 1,
        "storage_deposit": "0.00125",
        "mint_deposit": 10,
        "token_id": "0",
        "title": "Olympus Mons",
        "description": "Tallest mountain in charted solar system",
        "media": (
            "https://upload.wikimedia.org/wikipedia/commons/thumb/0/00/"
            "Olympus_Mons_alt.jpg/1024px-Olympus_Mons_alt.jpg"
        ),
        "copies": 1,
    },
}

# Top-level keys that may be overridden from the environment
ENV_OVERRIDABLE_KEYS = (
    "network_id",
    "node_url",
    "rpc_url",
    "helper_url",
    "master_account",
    "near_binary",
    "artifacts_dir",
    "working_dir",
    "command_timeout",
    "retries",
)


@dataclass
class ValidationResult:
    """Result of configuration validation"""
    is_valid: bool
    errors: List[str] = field(default_factory=list)
    validated_config: Optional[Dict[str, Any]] = None


@dataclass
class FtConfig:
    wasm: str
    init_method: str
    total_supply: str
    name: str
    symbol: str
    decimals: int
    icon: Optional[str] = None
    reference: Optional[str] = None
    reference_hash: Optional[str] = None


@dataclass
class NftConfig:
    wasm: str
    prefix: str
    init_method: str
    initial_balance: Union[int, float, str]
    storage_deposit: Union[int, float, str]


@dataclass
class DemoConfig:
    receiver_prefix: str
    receiver_initial_balance: Union[int, float, str]
    storage_deposit: Union[int, float, str]
    mint_deposit: Union[int, float, str]
    token_id: str
    title: str
    description: str
    media: str
    copies: int


@dataclass
class DeployConfig:
    """Validated deployment configuration"""
    network_id: str
    node_url: Optional[str]
    rpc_url: Optional[str]
    helper_url: Optional[str]
    master_account: Optional[str]
    near_binary: str
    artifacts_dir: str
    working_dir: str
    command_timeout: float
    retries: int
    ft: FtConfig
    nft: NftConfig
    nft_contract: NftConfig
    demo: DemoConfig
    source: Optional[str] = None

    @classmethod
    def from_dict(cls, config: Dict[str, Any], source: Optional[str] = None) -> "DeployConfig":
        ft = dict(config["ft"])
        ft["total_supply"] = str(ft["total_supply"])
        return cls(
            network_id=config["network_id"],
            node_url=config.get("node_url"),
            rpc_url=config.get("rpc_url"),
            helper_url=config.get("helper_url"),
            master_account=config.get("master_account"),
            near_binary=config["near_binary"],
            artifacts_dir=config["artifacts_dir"],
            working_dir=config["working_dir"],
            command_timeout=config["command_timeout"],
            retries=config["retries"],
            ft=FtConfig(**ft),
            nft=NftConfig(**config["nft"]),
            nft_contract=NftConfig(**config["nft_contract"]),
            demo=DemoConfig(**config["demo"]),
            source=source,
        )

    def with_overrides(self, **overrides) -> "DeployConfig":
        """Return a copy with non-None top-level overrides applied"""
        known = {f.name for f in fields(self)}
        unknown = set(overrides) - known
        if unknown:
            raise ConfigurationError(f"Unknown configuration keys: {sorted(unknown)}")
        applied = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **applied)

    def artifact_path(self, wasm: str) -> Path:
        """Resolve a wasm file name against working_dir/artifacts_dir"""
        path = Path(wasm)
        if path.is_absolute():
            return path
        return Path(self.working_dir) / self.artifacts_dir / path


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    result = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


class ConfigManager:
    """
    Loads and validates deployment configuration.

    Usage:
        manager = ConfigManager()
        config = manager.load("configs/deploy.yaml")
    """

    def __init__(self, schema_path: Optional[Path] = None, environ: Optional[Dict[str, str]] = None):
        self.schema_path = Path(schema_path) if schema_path else DEFAULT_SCHEMA_PATH
        self.environ = environ if environ is not None else os.environ
        self._schema: Optional[Dict[str, Any]] = None

    @property
    def schema(self) -> Dict[str, Any]:
        if self._schema is None:
            if not self.schema_path.exists():
                raise ConfigurationError(
                    f"Schema file not found: {self.schema_path}",
                    config_file=str(self.schema_path),
                    code=ErrorCodes.CONFIG_FILE_NOT_FOUND
                )
            try:
                with open(self.schema_path, 'r') as f:
                    self._schema = json.load(f)
            except json.JSONDecodeError as e:
                raise ConfigurationError(
                    f"Invalid JSON in schema file {self.schema_path}: {e}",
                    config_file=str(self.schema_path),
                    code=ErrorCodes.CONFIG_PARSE_FAILED
                )
        return self._schema

    def read_file(self, path: Union[str, Path]) -> Dict[str, Any]:
        """Read a YAML or JSON configuration file into a dict"""
        path = Path(path)
        if not path.exists():
            raise ConfigurationError(
                f"Configuration file not found: {path}",
                config_file=str(path),
                code=ErrorCodes.CONFIG_FILE_NOT_FOUND
            )

        try:
            with open(path, 'r') as f:
                if path.suffix == ".json":
                    data = json.load(f)
                else:
                    data = yaml.safe_load(f)
        except (json.JSONDecodeError, yaml.YAMLError) as e:
            raise ConfigurationError(
                f"Failed to parse configuration file {path}: {e}",
                config_file=str(path),
                code=ErrorCodes.CONFIG_PARSE_FAILED
            )

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigurationError(
                f"Configuration file {path} must contain a mapping at the top level",
                config_file=str(path),
                code=ErrorCodes.CONFIG_PARSE_FAILED
            )
        return data

    def _get_env_override(self, key: str, default: Any = None) -> Any:
        env_value = self.environ.get(f"{ENV_PREFIX}{key.upper()}")
        if env_value is None:
            return default
        try:
            return json.loads(env_value)
        except json.JSONDecodeError:
            return env_value

    def apply_env_overrides(self, config: Dict[str, Any]) -> Dict[str, Any]:
        result = copy.deepcopy(config)
        for key in ENV_OVERRIDABLE_KEYS:
            value = self._get_env_override(key, result.get(key))
            if value != result.get(key):
                LOG.debug(f"Configuration key '{key}' overridden from environment")
            result[key] = value
        return result

    def validate(self, config: Dict[str, Any]) -> ValidationResult:
        """Validate a configuration dict against the schema"""
        validator = jsonschema.Draft7Validator(self.schema)
        errors = []
        for error in sorted(validator.iter_errors(config), key=lambda e: [str(p) for p in e.path]):
            if error.path:
                path = " -> ".join(str(p) for p in error.path)
                errors.append(f"'{path}' {error.message}")
            else:
                errors.append(error.message)

        if errors:
            return ValidationResult(is_valid=False, errors=errors)
        return ValidationResult(is_valid=True, validated_config=config)

    def load(
        self,
        path: Optional[Union[str, Path]] = None,
        apply_env_overrides: bool = True
    ) -> DeployConfig:
        """
        Load, merge and validate configuration.

        Args:
            path: YAML/JSON file; None means built-in defaults only
            apply_env_overrides: Whether to honour NEAR_DEPLOY_* variables

        Raises:
            ConfigurationError: If the file is missing, unparsable or invalid
        """
        file_config = self.read_file(path) if path else {}
        config = _deep_merge(DEFAULT_CONFIG, file_config)

        if apply_env_overrides:
            config = self.apply_env_overrides(config)

        validation = self.validate(config)
        if not validation.is_valid:
            source = str(path) if path else "defaults"
            raise ConfigurationError(
                f"Configuration validation failed for {source}:\n"
                + "\n".join(f"  - {error}" for error in validation.errors),
                config_file=str(path) if path else None,
                errors=validation.errors,
                code=ErrorCodes.CONFIG_VALIDATION_FAILED
            )

        LOG.info(f"Loaded configuration from {path or 'built-in defaults'}")
        return DeployConfig.from_dict(config, source=str(path) if path else None)
