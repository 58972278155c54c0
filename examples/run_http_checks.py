# examples/run_http_checks.py
import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from apca.api.account import GetAccount
from apca.api.clock import GetClock
from apca.api.orders import ListOrders
from apca.api.positions import ListPositions
from apca.client import Client
from apca.errors import ApiError, HttpError
from apca.models import ListOrdersRequest
from utils import load_cfg, logger


async def main():
    cfg = load_cfg()
    async with Client.from_cfg(cfg) as client:
        try:
            clock = await client.dispatch(GetClock)
            logger.info(f"market open={clock.is_open} next_open={clock.next_open} next_close={clock.next_close}")

            account = await client.dispatch(GetAccount)
            logger.info(f"account {account.account_number} status={account.status} "
                        f"cash={account.cash} buying_power={account.buying_power}")

            for pos in await client.dispatch(ListPositions):
                logger.info(f"position {pos.symbol} qty={pos.qty} avg={pos.avg_entry_price}")

            orders = await client.dispatch(ListOrders, ListOrdersRequest(limit=20))
            for o in orders:
                logger.info(f"order {o.id} {o.side.value} {o.qty} {o.symbol} status={o.status.value}")
        except HttpError as e:
            logger.error(f"request failed: {e} variant={e.variant}")
        except ApiError as e:
            logger.error(f"request failed: {type(e).__name__}: {e}")


if __name__ == "__main__":
    asyncio.run(main())
