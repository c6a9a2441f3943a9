"""API v1 routers."""

from vendorhub.api.v1 import group_orders, invitations, orders, products, wallet, ws

__all__ = ["group_orders", "invitations", "orders", "products", "wallet", "ws"]
