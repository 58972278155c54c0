# apca/api/__init__.py
"""
Endpoint tables.

Each module declares module-level :class:`~apca.endpoint.Endpoint` values,
one per operation, e.g. ``client.dispatch(orders.GetOrder, order_id)``.
"""
