from .product import Product
from .sync_conflict import SyncConflict

__all__ = ["Product", "SyncConflict"]
