from .hot_store import HotStore, PostgresHotStore
from .postgres import PostgresDatabase

__all__ = [
    "HotStore",
    "PostgresDatabase",
    "PostgresHotStore",
]
