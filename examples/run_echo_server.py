"""Example echo server to try the resilient client against.

Answers "ping" with "pong" and echoes everything else. Stop and restart it
while simple_client.py runs to watch the client reconnect.
"""

import argparse
import asyncio
import logging

from aiohttp import WSMsgType, web


logger = logging.getLogger(__name__)


async def handle_ws(request: web.Request) -> web.WebSocketResponse:
    """Echo text and binary frames back to the client."""
    ws = web.WebSocketResponse(protocols=("chat",))
    await ws.prepare(request)
    logger.info("Client connected from %s", request.remote)

    async for msg in ws:
        if msg.type == WSMsgType.TEXT:
            if msg.data == "ping":
                await ws.send_str("pong")
            else:
                await ws.send_str(f"echo: {msg.data}")
        elif msg.type == WSMsgType.BINARY:
            await ws.send_bytes(msg.data)

    logger.info("Client disconnected (%s)", ws.close_code)
    return ws


async def main(host: str, port: int) -> None:
    """Run the echo server until interrupted."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    app = web.Application()
    app.router.add_get("/ws", handle_ws)
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, host, port)
    await site.start()
    print(f"Echo server listening on ws://{host}:{port}/ws")

    try:
        await asyncio.Event().wait()
    finally:
        await runner.cleanup()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--host", default="localhost")
    parser.add_argument("--port", type=int, default=8765)
    args = parser.parse_args()
    try:
        asyncio.run(main(args.host, args.port))
    except KeyboardInterrupt:
        print("\nShutting down...")
