"""
Unit tests for configuration loading and the async retry helper
"""

import json
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from near_deploy.utils.async_retry import AsyncRetry, RetryState, build_step_retry
from near_deploy.utils.config_manager import ConfigManager, DEFAULT_CONFIG
from near_deploy.utils.exceptions import (
    CommandFailedError,
    CommandTimeoutError,
    ConfigurationError,
    ErrorCodes,
    RpcError,
)


class TestConfigManager:
    """Test configuration management"""

    @pytest.fixture
    def config_manager(self):
        return ConfigManager(environ={})

    def test_defaults(self, config_manager):
        config = config_manager.load()

        assert config.network_id == "testnet"
        assert config.master_account is None
        assert config.ft.total_supply == "1000000000000000"
        assert config.ft.symbol == "META"
        assert config.nft.prefix == "nft"
        assert config.nft.initial_balance == 100
        assert config.nft_contract.prefix == "nft-contract"
        assert config.nft_contract.init_method == "new_default_metadata"
        assert config.demo.storage_deposit == "0.00125"

    def test_load_yaml_merges_defaults(self, config_manager, tmp_path):
        config_file = tmp_path / "deploy.yaml"
        config_file.write_text(
            "master_account: alice.testnet\n"
            "ft:\n"
            "  symbol: ALC\n"
            "  total_supply: 500\n"
            "nft:\n"
            "  initial_balance: 3\n"
        )

        config = config_manager.load(config_file)

        assert config.master_account == "alice.testnet"
        assert config.ft.symbol == "ALC"
        assert config.ft.total_supply == "500"
        assert config.ft.name == DEFAULT_CONFIG["ft"]["name"]
        assert config.nft.initial_balance == 3
        assert config.nft.prefix == "nft"
        assert config.source == str(config_file)

    def test_example_config_is_valid(self, config_manager):
        example = Path(__file__).resolve().parents[3] / "configs" / "deploy.yaml"

        config = config_manager.load(example)

        assert config.master_account == "metagallery.testnet"
        assert config.demo.storage_deposit == 0.00125

    def test_load_json(self, config_manager, tmp_path):
        config_file = tmp_path / "deploy.json"
        config_file.write_text(json.dumps({"network_id": "mainnet", "retries": 2}))

        config = config_manager.load(config_file)

        assert config.network_id == "mainnet"
        assert config.retries == 2

    def test_load_missing_config(self, config_manager, tmp_path):
        with pytest.raises(ConfigurationError) as exc_info:
            config_manager.load(tmp_path / "nonexistent.yaml")
        assert exc_info.value.code == ErrorCodes.CONFIG_FILE_NOT_FOUND

    def test_invalid_yaml(self, config_manager, tmp_path):
        config_file = tmp_path / "broken.yaml"
        config_file.write_text("ft: [unclosed\n")

        with pytest.raises(ConfigurationError) as exc_info:
            config_manager.load(config_file)
        assert exc_info.value.code == ErrorCodes.CONFIG_PARSE_FAILED

    def test_schema_violation(self, config_manager, tmp_path):
        config_file = tmp_path / "deploy.yaml"
        config_file.write_text("retries: -1\nft:\n  decimals: 300\nunknown_key: 1\n")

        with pytest.raises(ConfigurationError) as exc_info:
            config_manager.load(config_file)

        errors = exc_info.value.details["errors"]
        assert any("retries" in e for e in errors)
        assert any("decimals" in e for e in errors)
        assert any("unknown_key" in e for e in errors)

    def test_amounts_validated(self, config_manager, tmp_path):
        config_file = tmp_path / "deploy.yaml"
        config_file.write_text(
            "nft:\n"
            "  storage_deposit: -1\n"
            "nft_contract:\n"
            "  initial_balance: \"5 NEAR\"\n"
            "demo:\n"
            "  mint_deposit: abc\n"
            "  storage_deposit: \"0.00125\"\n"
        )

        with pytest.raises(ConfigurationError) as exc_info:
            config_manager.load(config_file)

        errors = exc_info.value.details["errors"]
        assert len(errors) == 3
        assert any("storage_deposit" in e and "nft" in e for e in errors)
        assert any("initial_balance" in e for e in errors)
        assert any("mint_deposit" in e for e in errors)

    def test_env_overrides(self, tmp_path):
        manager = ConfigManager(environ={
            "NEAR_DEPLOY_MASTER_ACCOUNT": "bob.testnet",
            "NEAR_DEPLOY_RETRIES": "4",
        })

        config = manager.load()

        assert config.master_account == "bob.testnet"
        assert config.retries == 4

    def test_env_overrides_can_be_disabled(self):
        manager = ConfigManager(environ={"NEAR_DEPLOY_MASTER_ACCOUNT": "bob.testnet"})
        assert manager.load(apply_env_overrides=False).master_account is None

    def test_with_overrides(self, config_manager):
        config = config_manager.load().with_overrides(master_account="carol.testnet", network_id=None)

        assert config.master_account == "carol.testnet"
        assert config.network_id == "testnet"

        with pytest.raises(ConfigurationError):
            config.with_overrides(bogus=1)

    def test_artifact_path(self, config_manager, tmp_path):
        config = config_manager.load().with_overrides(working_dir=str(tmp_path))

        assert config.artifact_path("metag_ft.wasm") == tmp_path / "out" / "metag_ft.wasm"
        assert config.artifact_path(str(tmp_path / "x.wasm")) == tmp_path / "x.wasm"


class TestAsyncRetry:
    """Test async retry functionality"""

    @pytest.mark.asyncio
    async def test_successful_without_retry(self):
        mock_func = AsyncMock(return_value="success")

        retry = AsyncRetry(max_retries=3)
        result = await retry.execute(mock_func)

        assert result == "success"
        assert mock_func.call_count == 1

    @pytest.mark.asyncio
    async def test_retry_on_timeout(self):
        mock_func = AsyncMock(side_effect=[CommandTimeoutError("slow"), "success"])

        retry = AsyncRetry(max_retries=3, base_delay=0.01, jitter=False)
        result = await retry.execute(mock_func)

        assert result == "success"
        assert mock_func.call_count == 2

    @pytest.mark.asyncio
    async def test_max_retries_exceeded(self):
        mock_func = AsyncMock(side_effect=RpcError("always fails"))

        retry = AsyncRetry(max_retries=2, base_delay=0.01)

        with pytest.raises(RpcError):
            await retry.execute(mock_func)

        assert mock_func.call_count == 2

    @pytest.mark.asyncio
    async def test_command_failure_not_retried(self):
        mock_func = AsyncMock(side_effect=CommandFailedError("exit 1"))

        retry = AsyncRetry(max_retries=5, base_delay=0.01)

        with pytest.raises(CommandFailedError):
            await retry.execute(mock_func)

        assert mock_func.call_count == 1

    @pytest.mark.asyncio
    async def test_stop_on(self):
        mock_func = AsyncMock(side_effect=RpcError("fatal"))

        retry = AsyncRetry(max_retries=5, base_delay=0.01, stop_on=(RpcError,))

        with pytest.raises(RpcError):
            await retry.execute(mock_func)
        assert mock_func.call_count == 1

    @pytest.mark.asyncio
    async def test_on_retry_callback(self):
        seen = []

        async def on_retry(attempt, exc, delay):
            seen.append((attempt, type(exc).__name__))

        mock_func = AsyncMock(side_effect=[RpcError("x"), RpcError("y"), "ok"])
        retry = AsyncRetry(max_retries=3, base_delay=0.01, jitter=False, on_retry=on_retry)

        assert await retry.execute(mock_func) == "ok"
        assert seen == [(1, "RpcError"), (2, "RpcError")]

    def test_retry_state(self):
        state = RetryState(AsyncRetry(max_retries=2, base_delay=1.0, max_delay=60.0, jitter=False))

        assert state.should_retry() is True
        assert state.next_delay() == 1.0

        error = RpcError("test")
        state.record_attempt(error)
        assert state.attempt == 1
        assert state.last_exception is error
        assert state.next_delay() == 2.0
        assert state.total_delay == 3.0

        state.policy.base_delay = 100
        assert state.next_delay() == 60.0

        state.record_attempt(error)
        assert state.should_retry() is False

    @pytest.mark.asyncio
    async def test_decorator(self):
        calls = []

        @AsyncRetry(max_retries=2, base_delay=0.01, jitter=False)
        async def fetch_status():
            calls.append(1)
            if len(calls) == 1:
                raise TimeoutError()
            return "ok"

        assert await fetch_status() == "ok"
        assert fetch_status.__name__ == "fetch_status"
        assert len(calls) == 2

    def test_build_step_retry(self):
        assert build_step_retry(0) is None
        retry = build_step_retry(2)
        assert retry.max_retries == 3
