"""
EVM Adapter Test Suite

Tests for EVMAdapter covering:
- ERC-20 reads (metadata, balance, allowance)
- Transaction preparation for every intent kind
- Sign / broadcast / status through the gateway
- Error handling before and after the network boundary

Test Structure:
    - Test fixtures and setup in test_mocks.py
    - Unit tests for individual adapter methods
    - End-to-end preparation -> wire payload -> signing -> broadcast flow

Usage:
    pytest tests/test_adapter/test_evm_adapter.py -v
"""

import asyncio

import pytest
from eth_account import Account
from unittest.mock import AsyncMock

from test_mocks import (
    MOCK_ALLOWANCE,
    MOCK_BALANCE,
    MOCK_GAS_ESTIMATE,
    MOCK_OTHER_ADDRESS,
    MOCK_RECIPIENT_ADDRESS,
    MOCK_SENDER_ADDRESS,
    MOCK_SPENDER_ADDRESS,
    MOCK_TOKEN_ADDRESS,
    MOCK_TOKEN_DECIMALS,
    MOCK_TOKEN_NAME,
    MOCK_TOKEN_SYMBOL,
    MOCK_TOTAL_SUPPLY,
    MOCK_TX_HASH,
    MockWeb3Provider,
    create_mock_adapter,
    create_mock_receipt,
)

from erc20_txkit.adapters.evm.constants import GWEI
from erc20_txkit.adapters.evm.encoders import encode_approve, encode_transfer, encode_transfer_from
from erc20_txkit.adapters.evm.schemas import ContractCallIntent
from erc20_txkit.adapters.evm.signatures import NonceSequencer
from erc20_txkit.engine.exceptions import (
    AmountOutOfRange,
    BroadcastRejected,
    ContractCallFailed,
    GasEstimationFailed,
    InputValidationError,
    InvalidAddress,
    RpcConnectionError,
)
from erc20_txkit.schemas.bases import TransactionStatus
from erc20_txkit.schemas.payloads import TxPayload

AMOUNT_250 = "250000000000000000000"
GAS_LIMIT = MOCK_GAS_ESTIMATE + MOCK_GAS_ESTIMATE // 10


class TestReads:

    @pytest.mark.asyncio
    async def test_get_token_info(self):
        adapter = create_mock_adapter()
        info = await adapter.get_token_info(MOCK_TOKEN_ADDRESS.lower())

        assert info.name == MOCK_TOKEN_NAME
        assert info.symbol == MOCK_TOKEN_SYMBOL
        assert info.decimals == MOCK_TOKEN_DECIMALS
        assert info.total_supply == MOCK_TOTAL_SUPPLY
        assert MOCK_TOKEN_ADDRESS in adapter.w3.contracts

    @pytest.mark.asyncio
    async def test_get_balance(self):
        provider = MockWeb3Provider()
        adapter = create_mock_adapter(provider)

        assert await adapter.get_balance(MOCK_TOKEN_ADDRESS, MOCK_SENDER_ADDRESS.lower()) == MOCK_BALANCE
        provider.contracts[MOCK_TOKEN_ADDRESS].functions.balanceOf.assert_called_once_with(MOCK_SENDER_ADDRESS)

    @pytest.mark.asyncio
    async def test_get_allowance(self):
        provider = MockWeb3Provider()
        adapter = create_mock_adapter(provider)

        allowance = await adapter.get_allowance(MOCK_TOKEN_ADDRESS, MOCK_SENDER_ADDRESS, MOCK_SPENDER_ADDRESS)

        assert allowance == MOCK_ALLOWANCE
        provider.contracts[MOCK_TOKEN_ADDRESS].functions.allowance.assert_called_once_with(
            MOCK_SENDER_ADDRESS, MOCK_SPENDER_ADDRESS
        )

    @pytest.mark.asyncio
    async def test_invalid_token_address(self):
        provider = MockWeb3Provider()
        with pytest.raises(InvalidAddress):
            await create_mock_adapter(provider).get_token_info("0xnot-a-token")
        provider.eth.contract.assert_not_called()

    @pytest.mark.asyncio
    async def test_reverted_read(self):
        provider = MockWeb3Provider()
        adapter = create_mock_adapter(provider)
        await adapter.get_balance(MOCK_TOKEN_ADDRESS, MOCK_SENDER_ADDRESS)
        contract = provider.contracts[MOCK_TOKEN_ADDRESS]
        contract.functions.symbol.return_value.call = AsyncMock(
            side_effect=ValueError({"message": "execution reverted"})
        )

        with pytest.raises(ContractCallFailed) as exc_info:
            await adapter.get_token_info(MOCK_TOKEN_ADDRESS)
        assert exc_info.value.reason == "execution reverted"
        assert exc_info.value.rpc_method == "eth_call(symbol)"

    @pytest.mark.asyncio
    async def test_read_timeout_overrides_settings(self):
        provider = MockWeb3Provider()
        adapter = create_mock_adapter(provider)
        await adapter.get_balance(MOCK_TOKEN_ADDRESS, MOCK_SENDER_ADDRESS)

        async def slow():
            await asyncio.sleep(1)
        provider.contracts[MOCK_TOKEN_ADDRESS].functions.allowance.return_value.call = AsyncMock(side_effect=slow)

        with pytest.raises(RpcConnectionError) as exc_info:
            await adapter.get_allowance(
                MOCK_TOKEN_ADDRESS, MOCK_SENDER_ADDRESS, MOCK_SPENDER_ADDRESS, timeout=0.01
            )
        assert exc_info.value.rejected is False
        assert exc_info.value.rpc_method == "eth_call(allowance)"


class TestPrepare:

    @pytest.mark.asyncio
    async def test_transfer_end_to_end_payload(self):
        provider = MockWeb3Provider()
        adapter = create_mock_adapter(provider)

        descriptor = await adapter.create_transfer_transaction(
            MOCK_TOKEN_ADDRESS, MOCK_SENDER_ADDRESS, MOCK_RECIPIENT_ADDRESS, AMOUNT_250
        )
        payload = TxPayload.from_descriptor(descriptor).model_dump(by_alias=True)

        assert payload == {
            "to": MOCK_TOKEN_ADDRESS,
            "data": encode_transfer(MOCK_RECIPIENT_ADDRESS, 250 * 10**18),
            "value": "0",
            "nonce": None,
            "gas": str(GAS_LIMIT),
            "maxFeePerGas": str(20 * GWEI),
            "maxPriorityFeePerGas": str(2 * GWEI),
        }
        provider.eth.estimate_gas.assert_awaited_once_with({
            "from": MOCK_SENDER_ADDRESS,
            "to": MOCK_TOKEN_ADDRESS,
            "data": payload["data"],
            "value": 0,
        })

    @pytest.mark.asyncio
    async def test_approve(self):
        adapter = create_mock_adapter()
        descriptor = await adapter.create_approve_transaction(
            MOCK_TOKEN_ADDRESS, MOCK_SENDER_ADDRESS, MOCK_SPENDER_ADDRESS, 5
        )
        assert descriptor.data == encode_approve(MOCK_SPENDER_ADDRESS, 5)
        assert descriptor.gas_limit == GAS_LIMIT

    @pytest.mark.asyncio
    async def test_transfer_from(self):
        adapter = create_mock_adapter()
        descriptor = await adapter.create_transfer_from_transaction(
            MOCK_TOKEN_ADDRESS, MOCK_SPENDER_ADDRESS, MOCK_SENDER_ADDRESS, MOCK_RECIPIENT_ADDRESS, 7
        )
        assert descriptor.data == encode_transfer_from(MOCK_SENDER_ADDRESS, MOCK_RECIPIENT_ADDRESS, 7)

    @pytest.mark.asyncio
    async def test_intent_as_mapping(self):
        adapter = create_mock_adapter()
        descriptor = await adapter.prepare_transaction(
            MOCK_TOKEN_ADDRESS,
            MOCK_SENDER_ADDRESS,
            {"kind": "approve", "spender": MOCK_SPENDER_ADDRESS.lower(), "amount": "1000"},
        )
        assert descriptor.data == encode_approve(MOCK_SPENDER_ADDRESS, 1000)

    @pytest.mark.asyncio
    async def test_contract_call_with_value(self):
        adapter = create_mock_adapter()
        descriptor = await adapter.prepare_transaction(
            MOCK_TOKEN_ADDRESS, MOCK_SENDER_ADDRESS, ContractCallIntent(data="0x12345678", value=10)
        )
        assert (descriptor.data, descriptor.value) == ("0x12345678", 10)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", ["-1", str(2**256), "12.5"])
    async def test_bad_amount_rejected_before_network(self, amount):
        provider = MockWeb3Provider()
        with pytest.raises(AmountOutOfRange):
            await create_mock_adapter(provider).create_transfer_transaction(
                MOCK_TOKEN_ADDRESS, MOCK_SENDER_ADDRESS, MOCK_RECIPIENT_ADDRESS, amount
            )
        provider.eth.estimate_gas.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_bad_recipient_rejected_before_network(self):
        provider = MockWeb3Provider()
        with pytest.raises(InvalidAddress):
            await create_mock_adapter(provider).create_transfer_transaction(
                MOCK_TOKEN_ADDRESS, MOCK_SENDER_ADDRESS, "0x123", 1
            )
        provider.eth.estimate_gas.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failed_estimate_has_no_fallback(self):
        provider = MockWeb3Provider()
        provider.eth.estimate_gas = AsyncMock(
            side_effect=ValueError({"message": "execution reverted: ERC20: insufficient allowance"})
        )
        with pytest.raises(GasEstimationFailed) as exc_info:
            await create_mock_adapter(provider).create_transfer_from_transaction(
                MOCK_TOKEN_ADDRESS, MOCK_SPENDER_ADDRESS, MOCK_SENDER_ADDRESS, MOCK_RECIPIENT_ADDRESS, 1
            )
        assert "insufficient allowance" in exc_info.value.reason

    @pytest.mark.asyncio
    async def test_estimate_timeout(self):
        provider = MockWeb3Provider()

        async def slow(tx):
            await asyncio.sleep(1)
        provider.eth.estimate_gas = AsyncMock(side_effect=slow)

        with pytest.raises(RpcConnectionError) as exc_info:
            await create_mock_adapter(provider).create_transfer_transaction(
                MOCK_TOKEN_ADDRESS, MOCK_SENDER_ADDRESS, MOCK_RECIPIENT_ADDRESS, 1, timeout=0.01
            )
        assert exc_info.value.rpc_method == "eth_estimateGas"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("intent", [
        {"kind": "transfer", "amount": "1"},
        {"kind": "mint", "recipient": MOCK_RECIPIENT_ADDRESS, "amount": "1"},
        {"recipient": MOCK_RECIPIENT_ADDRESS, "amount": "1"},
    ])
    async def test_malformed_intent_mapping(self, intent):
        provider = MockWeb3Provider()
        with pytest.raises(InputValidationError):
            await create_mock_adapter(provider).prepare_transaction(
                MOCK_TOKEN_ADDRESS, MOCK_SENDER_ADDRESS, intent
            )
        provider.eth.estimate_gas.assert_not_awaited()


class TestSubmission:

    @pytest.mark.asyncio
    async def test_prepare_sign_send_status(self):
        provider = MockWeb3Provider(tx_count=4)
        adapter = create_mock_adapter(provider)

        descriptor = await adapter.create_transfer_transaction(
            MOCK_TOKEN_ADDRESS, MOCK_SENDER_ADDRESS, MOCK_RECIPIENT_ADDRESS, AMOUNT_250
        )
        tx_hash = await adapter.sign_and_send(descriptor, MOCK_SENDER_ADDRESS)
        assert tx_hash == MOCK_TX_HASH

        raw = provider.eth.send_raw_transaction.await_args.args[0]
        assert Account.recover_transaction(raw) == MOCK_SENDER_ADDRESS

        assert await adapter.get_tx_status(tx_hash) is TransactionStatus.PENDING
        provider.receipt = create_mock_receipt(status=1)
        assert await adapter.get_tx_status(tx_hash) is TransactionStatus.SUCCESS

    @pytest.mark.asyncio
    async def test_sign_wire_payload(self):
        adapter = create_mock_adapter()
        signed = await adapter.sign_transaction({
            "to": MOCK_TOKEN_ADDRESS,
            "data": encode_transfer(MOCK_RECIPIENT_ADDRESS, 1),
            "value": "0",
            "nonce": 11,
            "gas": "60000",
            "maxFeePerGas": "20000000000",
            "maxPriorityFeePerGas": "2000000000",
        })
        assert signed.nonce == 11
        assert Account.recover_transaction(signed.raw) == MOCK_SENDER_ADDRESS

    @pytest.mark.asyncio
    async def test_send_raw(self):
        adapter = create_mock_adapter()
        signed = await adapter.sign_transaction(
            await adapter.create_approve_transaction(MOCK_TOKEN_ADDRESS, MOCK_SENDER_ADDRESS, MOCK_OTHER_ADDRESS, 1)
        )
        assert await adapter.send_signed_transaction(signed.raw) == MOCK_TX_HASH

    @pytest.mark.asyncio
    async def test_rejected_broadcast_releases_nonce(self):
        provider = MockWeb3Provider(tx_count=2)
        sequencer = NonceSequencer()
        adapter = create_mock_adapter(provider, sequencer=sequencer)
        provider.eth.send_raw_transaction = AsyncMock(side_effect=ValueError({"message": "nonce too low"}))

        descriptor = await adapter.create_transfer_transaction(
            MOCK_TOKEN_ADDRESS, MOCK_SENDER_ADDRESS, MOCK_RECIPIENT_ADDRESS, 1
        )
        with pytest.raises(BroadcastRejected) as exc_info:
            await adapter.sign_and_send(descriptor)

        assert exc_info.value.reason == "nonce too low"
        assert sequencer.peek(MOCK_SENDER_ADDRESS) == 2

    @pytest.mark.asyncio
    async def test_refused_broadcast_keeps_nonce_sequence(self):
        provider = MockWeb3Provider(tx_count=7)
        adapter = create_mock_adapter(provider, sequencer=NonceSequencer())
        provider.eth.send_raw_transaction = AsyncMock(side_effect=ConnectionRefusedError("connection refused"))

        descriptor = await adapter.create_transfer_transaction(
            MOCK_TOKEN_ADDRESS, MOCK_SENDER_ADDRESS, MOCK_RECIPIENT_ADDRESS, 1
        )
        with pytest.raises(RpcConnectionError) as exc_info:
            await adapter.sign_and_send(descriptor)
        assert exc_info.value.rejected is False

        resigned = await adapter.sign_transaction(descriptor)
        assert resigned.nonce == 7

    @pytest.mark.asyncio
    async def test_failed_send_of_signed_transaction_returns_nonce(self):
        provider = MockWeb3Provider(tx_count=3)
        sequencer = NonceSequencer()
        adapter = create_mock_adapter(provider, sequencer=sequencer)
        descriptor = await adapter.create_approve_transaction(
            MOCK_TOKEN_ADDRESS, MOCK_SENDER_ADDRESS, MOCK_SPENDER_ADDRESS, 1
        )
        first = await adapter.sign_transaction(descriptor)
        provider.eth.send_raw_transaction = AsyncMock(side_effect=OSError("network unreachable"))

        with pytest.raises(RpcConnectionError):
            await adapter.send_signed_transaction(first)

        assert sequencer.peek(MOCK_SENDER_ADDRESS) == 3
        assert (await adapter.sign_transaction(descriptor)).nonce == 3

    @pytest.mark.asyncio
    async def test_malformed_wire_payload(self):
        adapter = create_mock_adapter()
        with pytest.raises(InputValidationError):
            await adapter.sign_transaction({"maxFeePerGas": "2", "maxPriorityFeePerGas": "1"})
        adapter.w3.eth.get_transaction_count.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_status_timeout(self):
        provider = MockWeb3Provider()

        async def slow(tx_hash):
            await asyncio.sleep(1)
        provider.eth.get_transaction_receipt = AsyncMock(side_effect=slow)
        adapter = create_mock_adapter(provider)

        with pytest.raises(RpcConnectionError) as exc_info:
            await adapter.get_tx_status(MOCK_TX_HASH, timeout=0.01)
        assert exc_info.value.rpc_method == "eth_getTransactionReceipt"

    @pytest.mark.asyncio
    async def test_wait_for_receipt(self):
        adapter = create_mock_adapter(MockWeb3Provider(receipt=create_mock_receipt(status=0)))
        summary = await adapter.wait_for_receipt(MOCK_TX_HASH, poll_interval=0.001)
        assert summary.status is TransactionStatus.FAILED
