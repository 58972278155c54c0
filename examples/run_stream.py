# examples/run_stream.py
import argparse
import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from apca.client import Client
from apca.enums import Feed
from apca.errors import AuthError
from apca.stream import Channel, ErrorEvent, Reconnected
from utils import load_cfg, logger


async def main(symbols, seconds):
    cfg = load_cfg()
    async with Client.from_cfg(cfg) as client:
        if symbols:
            client.subscribe(Channel.quotes(*symbols))
            client.subscribe(Channel.trades(*symbols))
            feed = Feed.MARKET_DATA
        else:
            client.subscribe(Channel.trade_updates())
            feed = Feed.TRADING

        async def consume():
            try:
                async for ev in client.events(feed):
                    if isinstance(ev, Reconnected):
                        logger.warning(f"reconnected after {ev.attempts} attempt(s), events may be missing")
                    elif isinstance(ev, ErrorEvent):
                        logger.error(f"stream error: {ev.error}")
                    else:
                        logger.info(f"{type(ev).__name__}: {ev.model_dump(exclude_none=True)}")
            except AuthError as e:
                logger.error(f"stream auth rejected: {e}")

        task = asyncio.create_task(consume())
        await asyncio.sleep(seconds)
        await client.close()
        await task


if __name__ == "__main__":
    ap = argparse.ArgumentParser(description="print stream events for a while")
    ap.add_argument("symbols", nargs="*", help="market data symbols; none = trade updates")
    ap.add_argument("--seconds", type=float, default=60.0)
    args = ap.parse_args()
    asyncio.run(main(args.symbols, args.seconds))
