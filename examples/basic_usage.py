"""Basic usage example for pytriplesolar library."""

import asyncio

from pytriplesolar import TripleSolarClient


async def main() -> None:
    """Demonstrate basic usage of pytriplesolar."""
    # Initialize client with credentials
    async with TripleSolarClient(
        username="your@email.com",
        password="your_password",
    ) as client:
        print("Connected to TripleSolar API")

        # Register the interface; this logs in and runs the first poll
        device = await client.add_device("your_interface_id")
        if not device.available:
            print(f"Device unavailable: {device.unavailable_reason}")
            return

        # Inject a manual poll so the example does not wait an hour
        await device.refresh()

        snapshot = device.last_snapshot
        if snapshot is None:
            print("No telemetry received yet")
            return

        print(f"\nDevice: {snapshot.name}")
        print(f"  Interface ID: {snapshot.interface_id}")
        print(f"  Firmware: {snapshot.firmware.version}")
        print(f"  Boiler on: {snapshot.boiler_on}")
        print(f"  Boiler temperature: {snapshot.heat_pump.dhw_boiler_temp}°C")
        print(f"  Source in/out: {snapshot.heat_pump.source_in_temp}°C / {snapshot.heat_pump.source_out_temp}°C")
        print(f"  Compressor running: {snapshot.heat_pump.compressor_on}")

        # Device control
        print("\nSetting boiler target temperature to 50°C...")
        await device.set_target_temperature(50)

        print("Switching boiler on...")
        strategy = await device.set_boiler_mode(True)
        print(f"Boiler mode changed via {strategy}")


if __name__ == "__main__":
    asyncio.run(main())
