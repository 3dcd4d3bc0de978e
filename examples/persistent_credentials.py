"""Example showing tokens shared across devices and restarts."""

import asyncio
from pathlib import Path

from aiohttp import ClientSession

from pytriplesolar import FileCredentialStore, TripleSolarClient


CREDENTIALS_FILE = Path("triplesolar_credentials.json")


def on_change(capability: str, value: object) -> None:
    """Print capability updates written by the poll cycle."""
    print(f"  {capability} -> {value}")


async def main() -> None:
    """Demonstrate a file-backed credential store with an injected session."""
    store = FileCredentialStore(CREDENTIALS_FILE)

    # Only the first run needs a password, later runs refresh the stored tokens
    async with ClientSession() as session:
        client = TripleSolarClient(
            username="your@email.com",
            password="your_password" if store.get() is None else None,
            credential_store=store,
            session=session,  # Inject existing session
            poll_interval=300,
        )

        async with client:
            for interface_id in ("first_interface_id", "second_interface_id"):
                device = await client.add_device(interface_id)
                device.shell.add_listener(on_change)
                print(f"{device}: available={device.available}")

            # Let a few poll cycles run
            await asyncio.sleep(900)

        # Session remains open after client exits
        print("\nClient closed, tokens saved to", CREDENTIALS_FILE)


if __name__ == "__main__":
    asyncio.run(main())
