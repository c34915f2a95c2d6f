"""Database module for swap history."""

from topswap.db.engine import close_db, get_session, init_db
from topswap.db.history import list_swap_results, save_swap_result
from topswap.db.models import SwapRecord

__all__ = [
    "close_db",
    "get_session",
    "init_db",
    "list_swap_results",
    "save_swap_result",
    "SwapRecord",
]
