# tests/test_chain_services.py
"""
Tests for the JSON-RPC and explorer clients with mocked HTTP.
"""
from unittest.mock import MagicMock, patch

import pytest
import requests
from eth_abi import encode

from app.services import chain_rpc, explorer

TOKEN = "0x" + "1" * 40
OWNER = "0x" + "2" * 40
SPENDER = "0x" + "3" * 40


def rpc_response(payload):
    response = MagicMock()
    response.json.return_value = payload
    response.raise_for_status.return_value = None
    return response


def explorer_response(result, status="1", message="OK"):
    response = MagicMock()
    response.json.return_value = {"status": status, "message": message, "result": result}
    response.raise_for_status.return_value = None
    return response


class TestRpcCall:
    """Test JSON-RPC request handling."""

    @patch("app.services.chain_rpc.requests.post")
    def test_result(self, mock_post):
        mock_post.return_value = rpc_response({"jsonrpc": "2.0", "id": 1, "result": "0x10"})

        assert chain_rpc.get_block_number() == 16
        body = mock_post.call_args.kwargs["json"]
        assert body["method"] == "eth_blockNumber"
        assert mock_post.call_args.kwargs["timeout"] > 0

    @patch("app.services.chain_rpc.requests.post")
    def test_error_payload(self, mock_post):
        mock_post.return_value = rpc_response({"error": {"code": -32000, "message": "bad"}})
        with pytest.raises(chain_rpc.ChainRPCError):
            chain_rpc.rpc_call("eth_blockNumber", [])

    @patch("app.services.chain_rpc.requests.post")
    def test_missing_result(self, mock_post):
        mock_post.return_value = rpc_response({"jsonrpc": "2.0", "id": 1})
        with pytest.raises(chain_rpc.ChainRPCError):
            chain_rpc.rpc_call("eth_blockNumber", [])

    @patch("app.services.chain_rpc.requests.post", side_effect=requests.exceptions.Timeout("slow"))
    def test_unreachable(self, mock_post):
        assert chain_rpc.is_rpc_reachable() is False


class TestChainReads:
    @patch("app.services.chain_rpc.rpc_call", return_value="0x6080604052")
    def test_is_contract(self, mock_call):
        assert chain_rpc.is_contract(TOKEN) is True

    @patch("app.services.chain_rpc.rpc_call", return_value="0x")
    def test_is_not_contract(self, mock_call):
        assert chain_rpc.is_contract(TOKEN) is False

    @patch("app.services.chain_rpc.rpc_call", side_effect=requests.exceptions.ConnectionError("down"))
    def test_is_contract_on_failure(self, mock_call):
        assert chain_rpc.is_contract(TOKEN) is False

    @patch("app.services.chain_rpc.rpc_call")
    def test_get_allowance(self, mock_call):
        mock_call.return_value = "0x" + encode(["uint256"], [chain_rpc.MAX_UINT256]).hex()

        assert chain_rpc.get_allowance(TOKEN, OWNER, SPENDER) == chain_rpc.MAX_UINT256
        call = mock_call.call_args[0][1][0]
        assert call["to"] == TOKEN
        assert call["data"].startswith("0x" + chain_rpc.ALLOWANCE_SELECTOR)

    @patch("app.services.chain_rpc.rpc_call", return_value="0x")
    def test_empty_allowance(self, mock_call):
        assert chain_rpc.get_allowance(TOKEN, OWNER, SPENDER) == 0

    @patch("app.services.chain_rpc.rpc_call")
    def test_get_amounts_out(self, mock_call):
        mock_call.return_value = "0x" + encode(["uint256[]"], [[10 ** 18, 98_000]]).hex()
        assert chain_rpc.get_amounts_out(TOKEN, 10 ** 18, [OWNER, SPENDER]) == [10 ** 18, 98_000]

    @patch("app.services.chain_rpc.rpc_call")
    def test_pair_exists(self, mock_call):
        mock_call.return_value = "0x" + encode(["address"], [SPENDER]).hex()
        assert chain_rpc.pair_exists(TOKEN, OWNER, SPENDER) is True

        mock_call.return_value = "0x" + encode(["address"], [chain_rpc.ZERO_ADDRESS]).hex()
        assert chain_rpc.pair_exists(TOKEN, OWNER, SPENDER) is False

    def test_is_valid_address(self):
        assert chain_rpc.is_valid_address(TOKEN)
        assert not chain_rpc.is_valid_address("0x123")
        assert not chain_rpc.is_valid_address("")


class TestExplorer:
    """Test explorer lookups and their neutral defaults."""

    @patch("app.services.explorer.requests.get")
    def test_verified_contract(self, mock_get):
        mock_get.return_value = explorer_response([
            {"SourceCode": "contract X {}", "ContractName": "X", "CompilerVersion": "v0.8.19", "Proxy": "1"}
        ])

        info = explorer.get_verification_info(TOKEN)

        assert info == {"verified": True, "contractName": "X", "compilerVersion": "v0.8.19", "isProxy": True}
        params = mock_get.call_args.kwargs["params"]
        assert params["module"] == "contract"
        assert params["action"] == "getsourcecode"

    @patch("app.services.explorer.requests.get")
    def test_unverified_contract(self, mock_get):
        mock_get.return_value = explorer_response([{"SourceCode": "", "ContractName": "", "Proxy": "0"}])
        info = explorer.get_verification_info(TOKEN)
        assert info["verified"] is False
        assert info["contractName"] is None

    @patch("app.services.explorer.requests.get")
    def test_notok_is_unverified(self, mock_get):
        mock_get.return_value = explorer_response("Invalid API Key", status="0", message="NOTOK")
        assert explorer.get_verification_info(TOKEN)["verified"] is False

    @patch("app.services.explorer.requests.get", side_effect=requests.exceptions.Timeout("slow"))
    def test_outage_gives_defaults(self, mock_get):
        info = explorer.get_contract_info(TOKEN)
        assert info["verified"] is False
        assert info["ageDays"] == 0
        assert info["txCount"] == 0

    @patch("app.services.explorer.requests.get")
    def test_transaction_count(self, mock_get):
        mock_get.return_value = explorer_response([{"hash": "0x1"}, {"hash": "0x2"}])
        assert explorer.get_transaction_count(TOKEN) == 2

    @patch("app.services.explorer.requests.get")
    def test_no_transactions(self, mock_get):
        mock_get.return_value = explorer_response("No transactions found", status="0", message="No transactions found")
        assert explorer.get_transaction_count(TOKEN) == 0

    def test_calculate_age_days(self):
        now = 1_700_000_000
        assert explorer.calculate_age_days(None, now) == 0
        assert explorer.calculate_age_days(now - 10 * 86400 - 5, now) == 10
        assert explorer.calculate_age_days(now + 100, now) == 0
