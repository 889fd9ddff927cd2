"""
HTTP API and transport-neutral handlers for the order intake.

The FastAPI app is created with ``orderflow.api.server.create_app``;
``handle_create_order`` and ``handle_list_orders`` work without FastAPI.
"""

from orderflow.api.handlers import handle_create_order, handle_list_orders

__all__ = ["handle_create_order", "handle_list_orders"]
