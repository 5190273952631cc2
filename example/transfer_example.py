from erc20_txkit.adapters.evm.adapter import EVMAdapter
from erc20_txkit.adapters.evm.constants import GatewaySettings, SigningConfig
from erc20_txkit.schemas.payloads import TxPayload

# Reads RPC_URL, CHAIN_NAME and PRIVATE_KEY from the environment (or .env)
settings = GatewaySettings.from_env()
adapter = EVMAdapter(settings, SigningConfig.from_env(settings.chain_name))

token = "0x5FbDB2315678afecb367f032d93F642f64180aa3"  # Replace with the deployed token
recipient = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"


async def main():
    sender = adapter.signer.address

    info = await adapter.get_token_info(token)
    print(f"{info.name} ({info.symbol}), balance:", await adapter.get_balance(token, sender))

    tx = await adapter.create_transfer_transaction(token, sender, recipient, "250000000000000000000")
    print("Prepared:", TxPayload.from_descriptor(tx).to_canonical_json())

    tx_hash = await adapter.sign_and_send(tx, sender)
    print("Sent:", tx_hash)

    receipt = await adapter.wait_for_receipt(tx_hash, deadline=120)
    print("Status:", receipt.status.value, "gas used:", receipt.gas_used)


if __name__ == "__main__":
    import asyncio
    asyncio.run(main())
