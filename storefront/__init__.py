"""Storefront - e-commerce backend.

- Users register and log in; a signed JWT identifies them afterwards.
- Categories and products form the catalog.
- Transactions are orders placed from a cart by the authenticated user.
  Only admins may move a transaction between statuses.

See README for setup and usage.
"""

__all__ = ["__version__"]

__version__ = "0.1.0"
