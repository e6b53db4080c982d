# tests/test_config.py
"""
Tests for startup configuration checks, network selection and process startup.
"""
from unittest.mock import patch

import pytest

from app.capabilities.registry import CapabilityRegistry
from app.core.config import ConfigurationError, Settings, enforce_settings, settings, validate_settings
from app.core.network import get_network_config, get_payment_asset, get_payment_network, get_rpc_url

PAY_TO = "0x" + "b" * 40


def make_settings(**overrides):
    values = {
        "ENVIRONMENT": "development",
        "NETWORK_MODE": "testnet",
        "ALLOW_MAINNET": False,
        "SKIP_X402": False,
        "X402_PAY_TO_ADDRESS": PAY_TO,
        "X402_BINDING_SECRET": "secret",
        "ANTHROPIC_API_KEY": "sk-ant-test",
        "CHAIN_RPC_URL": None,
    }
    values.update(overrides)
    return Settings(**values)


class TestValidateSettings:
    """Test configuration rules."""

    def test_valid_configuration(self):
        report = validate_settings(make_settings())
        assert report.valid
        assert report.warnings == []

    def test_bypass_refused_in_production(self):
        report = validate_settings(make_settings(ENVIRONMENT="production", SKIP_X402=True))
        assert not report.valid
        assert any("SKIP_X402" in error for error in report.errors)

    def test_bypass_allowed_in_development(self):
        assert validate_settings(make_settings(SKIP_X402=True)).valid

    def test_mainnet_requires_opt_in(self):
        report = validate_settings(make_settings(NETWORK_MODE="mainnet"))
        assert any("ALLOW_MAINNET" in error for error in report.errors)

        assert validate_settings(make_settings(NETWORK_MODE="mainnet", ALLOW_MAINNET=True)).valid

    def test_pay_to_required_in_production(self):
        report = validate_settings(make_settings(ENVIRONMENT="production", X402_PAY_TO_ADDRESS=None))
        assert "X402_PAY_TO_ADDRESS is required in production" in report.errors

    def test_missing_pay_to_warns_in_development(self):
        report = validate_settings(make_settings(X402_PAY_TO_ADDRESS=None))
        assert report.valid
        assert any("placeholder" in warning for warning in report.warnings)

    def test_binding_secret_required_in_production(self):
        report = validate_settings(make_settings(ENVIRONMENT="production", X402_BINDING_SECRET=None))
        assert "X402_BINDING_SECRET is required in production" in report.errors

    def test_missing_formatter_key_is_a_warning(self):
        report = validate_settings(make_settings(ANTHROPIC_API_KEY=None))
        assert report.valid
        assert any("ANTHROPIC_API_KEY" in warning for warning in report.warnings)

    def test_enforce_raises_with_all_errors(self):
        config = make_settings(ENVIRONMENT="production", SKIP_X402=True, NETWORK_MODE="mainnet")
        with pytest.raises(ConfigurationError) as exc:
            enforce_settings(config)
        assert len(exc.value.errors) == 2


class TestNetworkSelection:
    def test_testnet(self):
        config = make_settings()
        assert get_payment_network(config) == "base-sepolia"
        assert get_payment_asset(config)["address"] == "0x036CbD53842c5426634e7929541eC2318f3dCF7e"
        assert get_rpc_url(config) == "https://evm-t3.cronos.org"

    def test_mainnet(self):
        config = make_settings(NETWORK_MODE="mainnet", ALLOW_MAINNET=True)
        assert get_payment_network(config) == "base"
        assert get_payment_asset(config)["decimals"] == 6

    def test_rpc_override(self):
        assert get_rpc_url(make_settings(CHAIN_RPC_URL="http://localhost:8545")) == "http://localhost:8545"

    def test_network_config(self):
        network = get_network_config(make_settings())
        assert network["mode"] == "testnet"
        assert network["chainId"] == 338
        assert network["payment"]["network"] == "base-sepolia"
        assert network["payment"]["payTo"] == PAY_TO
        assert network["payment"]["bypass"] is False


class TestCreateApp:
    def test_refuses_bypass_in_production(self):
        from app.main import create_app

        with patch.multiple(settings, ENVIRONMENT="production", SKIP_X402=True):
            with pytest.raises(ConfigurationError):
                create_app(registry=CapabilityRegistry(), formatter=None)


class TestServerMain:
    """Process startup exits non-zero on bad configuration."""

    @patch("app.server.uvicorn.run")
    def test_exit_on_configuration_error(self, mock_run):
        from app.server import main

        with patch.multiple(settings, ENVIRONMENT="production", SKIP_X402=True):
            with pytest.raises(SystemExit) as exc:
                main()

        assert exc.value.code == 1
        mock_run.assert_not_called()

    @patch("app.server.uvicorn.run")
    def test_exit_on_startup_failure(self, mock_run):
        from app.server import main

        with patch("app.main.create_app", side_effect=RuntimeError("boom")):
            with pytest.raises(SystemExit) as exc:
                main()

        assert exc.value.code == 1
        mock_run.assert_not_called()

    @patch("app.server.uvicorn.run")
    def test_serves_valid_configuration(self, mock_run):
        from app.server import main

        with patch("app.main.build_registry", return_value=CapabilityRegistry()):
            main()

        mock_run.assert_called_once()
        assert mock_run.call_args.kwargs["port"] == settings.PORT
