"""
Repository layer for data access.

Repositories encapsulate SQLAlchemy queries for each aggregate (catalog,
sales, procurement, raw material inventory, id sequences). Lookups used
ahead of a state transition accept ``for_update`` so the row is locked for
the rest of the transaction.
"""
