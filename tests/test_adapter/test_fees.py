"""
FeeEstimator tests: gas margin, default and market quotes, tip overrides and
error classification of failed estimates.
"""

import asyncio

import pytest
from unittest.mock import AsyncMock

from test_mocks import (
    MOCK_BASE_FEE,
    MOCK_RECIPIENT_ADDRESS,
    MOCK_REWARD,
    MOCK_SENDER_ADDRESS,
    MOCK_TOKEN_ADDRESS,
    MockWeb3Provider,
)

from erc20_txkit.adapters.evm.constants import GWEI, FeeSettings, GatewaySettings
from erc20_txkit.adapters.evm.encoders import encode_transfer
from erc20_txkit.adapters.evm.fees import FeeEstimator
from erc20_txkit.adapters.evm.schemas import FeeQuote
from erc20_txkit.engine.exceptions import (
    FeeDataUnavailable,
    GasEstimationFailed,
    InputValidationError,
    InvalidAddress,
    InvalidFeeQuote,
    RpcConnectionError,
)


@pytest.fixture
def provider():
    return MockWeb3Provider()


@pytest.fixture
def estimator(provider):
    return FeeEstimator(provider, GatewaySettings(request_timeout=5.0))


class TestGasLimit:

    @pytest.mark.parametrize("estimated,expected", [
        (0, 0),
        (9, 9),
        (21_000, 23_100),
        (100_000, 110_000),
        (51_234, 56_357),
    ])
    def test_margin(self, estimator, estimated, expected):
        assert estimator.compute_gas_limit(estimated) == expected

    def test_custom_divisor(self, provider):
        settings = GatewaySettings(fees=FeeSettings(gas_margin_divisor=5))
        assert FeeEstimator(provider, settings).compute_gas_limit(100_000) == 120_000

    def test_negative_estimate(self, estimator):
        with pytest.raises(InputValidationError):
            estimator.compute_gas_limit(-1)


class TestQuotes:

    def test_defaults(self, estimator):
        quote = estimator.quote_fees(gas_limit=110_000)
        assert quote.max_fee_per_gas == 20 * GWEI
        assert quote.max_priority_fee_per_gas == 2 * GWEI
        assert quote.estimated_cost == 110_000 * 20 * GWEI

    def test_tip_override_preserves_margin(self, estimator):
        previous = estimator.quote_fees(gas_limit=100_000)
        quote = estimator.quote_fees(5 * GWEI, previous=previous)
        assert quote.max_fee_per_gas == 23 * GWEI
        assert quote.max_priority_fee_per_gas == 5 * GWEI
        assert quote.gas_limit == 100_000
        # previous quote is untouched
        assert previous.max_fee_per_gas == 20 * GWEI

    def test_lower_tip(self, estimator):
        quote = estimator.quote_fees(0)
        assert quote.max_fee_per_gas == 18 * GWEI
        assert quote.max_priority_fee_per_gas == 0

    def test_negative_tip(self, estimator):
        with pytest.raises(InputValidationError):
            estimator.quote_fees(-1)

    def test_quote_invariant(self):
        with pytest.raises(InvalidFeeQuote):
            FeeQuote(gas_limit=1, max_fee_per_gas=1, max_priority_fee_per_gas=2)

    def test_configured_defaults(self, provider):
        settings = GatewaySettings(fees=FeeSettings(default_max_fee_gwei=50, default_priority_fee_gwei=3))
        quote = FeeEstimator(provider, settings).quote_fees()
        assert (quote.max_fee_per_gas, quote.max_priority_fee_per_gas) == (50 * GWEI, 3 * GWEI)


class TestMarketQuote:

    @pytest.mark.asyncio
    async def test_fee_history(self, estimator, provider):
        quote = await estimator.market_quote(60_000)
        assert quote.max_priority_fee_per_gas == MOCK_REWARD
        assert quote.max_fee_per_gas == 2 * MOCK_BASE_FEE + MOCK_REWARD
        assert quote.gas_limit == 60_000
        provider.eth.fee_history.assert_awaited_once_with(1, "latest", [25.0])

    @pytest.mark.asyncio
    async def test_falls_back_to_max_priority_fee(self):
        provider = MockWeb3Provider(reward=None)
        provider.eth.max_priority_fee = asyncio.sleep(0, result=3 * GWEI)
        quote = await FeeEstimator(provider).market_quote(21_000)
        assert quote.max_priority_fee_per_gas == 3 * GWEI
        assert quote.max_fee_per_gas == 2 * MOCK_BASE_FEE + 3 * GWEI

    @pytest.mark.asyncio
    async def test_no_base_fee(self, estimator, provider):
        provider.eth.fee_history = AsyncMock(return_value={"baseFeePerGas": [], "reward": []})
        with pytest.raises(FeeDataUnavailable):
            await estimator.market_quote(21_000)

    @pytest.mark.asyncio
    async def test_fee_history_rejected(self, estimator, provider):
        provider.eth.fee_history = AsyncMock(
            side_effect=ValueError({"code": -32601, "message": "the method eth_feeHistory does not exist"})
        )
        with pytest.raises(FeeDataUnavailable) as exc_info:
            await estimator.market_quote(21_000)
        assert exc_info.value.reason == "the method eth_feeHistory does not exist"


class TestEstimateGas:

    @pytest.mark.asyncio
    async def test_estimate(self, estimator, provider):
        data = encode_transfer(MOCK_RECIPIENT_ADDRESS, 1)
        estimated = await estimator.estimate_gas(MOCK_SENDER_ADDRESS, MOCK_TOKEN_ADDRESS.lower(), data)
        assert estimated == provider.gas_estimate
        provider.eth.estimate_gas.assert_awaited_once_with({
            "from": MOCK_SENDER_ADDRESS,
            "to": MOCK_TOKEN_ADDRESS,
            "data": data,
            "value": 0,
        })

    @pytest.mark.asyncio
    async def test_contract_creation_has_no_to(self, estimator, provider):
        await estimator.estimate_gas(MOCK_SENDER_ADDRESS, None, "0x6080")
        tx = provider.eth.estimate_gas.await_args.args[0]
        assert "to" not in tx

    @pytest.mark.asyncio
    async def test_invalid_target_never_reaches_node(self, estimator, provider):
        with pytest.raises(InvalidAddress):
            await estimator.estimate_gas(MOCK_SENDER_ADDRESS, "0xnope", "0x")
        provider.eth.estimate_gas.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_revert_reason_preserved(self, estimator, provider):
        reason = "execution reverted: ERC20: transfer amount exceeds balance"
        provider.eth.estimate_gas = AsyncMock(side_effect=ValueError({"code": 3, "message": reason}))

        with pytest.raises(GasEstimationFailed) as exc_info:
            await estimator.estimate_gas(MOCK_SENDER_ADDRESS, MOCK_TOKEN_ADDRESS, "0x")

        assert exc_info.value.reason == reason
        assert exc_info.value.rejected is True
        assert exc_info.value.rpc_method == "eth_estimateGas"

    @pytest.mark.asyncio
    async def test_timeout_is_connection_error(self, estimator, provider):
        async def slow(tx):
            await asyncio.sleep(1)
            return 21_000
        provider.eth.estimate_gas = AsyncMock(side_effect=slow)

        with pytest.raises(RpcConnectionError) as exc_info:
            await estimator.estimate_gas(MOCK_SENDER_ADDRESS, MOCK_TOKEN_ADDRESS, "0x", timeout=0.01)
        assert exc_info.value.rejected is False

    @pytest.mark.asyncio
    async def test_refused_connection(self, estimator, provider):
        provider.eth.estimate_gas = AsyncMock(side_effect=ConnectionRefusedError("connection refused"))
        with pytest.raises(RpcConnectionError) as exc_info:
            await estimator.estimate_gas(MOCK_SENDER_ADDRESS, MOCK_TOKEN_ADDRESS, "0x")
        assert not exc_info.value.rejected
