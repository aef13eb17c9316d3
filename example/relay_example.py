import asyncio
import logging

from meta_relay.adapters import RelayHub
from meta_relay.engine.exceptions import RelayError

# Chain configuration (EVM_*, TRON_*) and relay settings (RELAY_*) are read from .env
sender_pk = "0xxxx"  # Replace with the token holder's key
recipient = "0xRecipientAddress"  # Replace with the recipient address

logging.basicConfig(level=logging.INFO)


async def main():
    hub = RelayHub()
    try:
        return await hub.relay_transfer("AFRi_ERC20", sender_pk, recipient, "12.5")
    except RelayError as e:
        return e.to_dict()


if __name__ == "__main__":
    result = asyncio.run(main())
    print("Result:", result)
