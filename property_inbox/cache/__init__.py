from property_inbox.cache.query_cache import QueryCache, Snapshot, get_query_cache, query_cache
from property_inbox.cache.keys import StaleTime

__all__ = [
    "QueryCache",
    "Snapshot",
    "StaleTime",
    "get_query_cache",
    "query_cache",
]
