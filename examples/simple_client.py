"""Simple resilient client example.

Tries a dead URL first, falls back to the echo server from
run_echo_server.py, sends a message every second and keeps a heartbeat.
"""

import asyncio
import logging
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from resilient_ws import ConnectionConfig, ResilientWebSocket


async def main():
    """Run the client for a minute."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    config = ConnectionConfig(
        connect_timeout=2.0,
        max_reconnect_attempts=10,
        enable_heartbeat=True,
        heartbeat_interval=5.0,
        heartbeat_timeout=2.0,
    )
    ws = ResilientWebSocket(
        ["ws://localhost:9999/ws", "ws://localhost:8765/ws"],
        protocols="chat",
        config=config,
    )
    ws.on_open = lambda e: print(f"Connected to {ws.url} (protocol={ws.protocol!r})")
    ws.on_message = lambda e: print(f"Received: {e.data}")
    ws.on_close = lambda e: print(f"Closed: {e.code} {e.reason}")

    with ws:
        for i in range(60):
            ws.send(f"message {i}")
            if ws.ready_state != ws.OPEN:
                print(
                    f"Offline, {ws.get_queued_message_count()} queued "
                    f"({ws.buffered_amount} bytes), "
                    f"{ws.get_reconnect_attempts()} reconnect attempts"
                )
            await asyncio.sleep(1)

    print("Client session complete")


if __name__ == "__main__":
    asyncio.run(main())
