"""
apca: asyncio client for the Alpaca trading API.

- apca.api: endpoint descriptors (account, orders, positions, assets, clock, market data)
- apca.stream: subscription registry, session machine and reconnecting event stream
- apca.client.Client: one object for dispatch and streaming
"""
__version__ = "0.1.0"
