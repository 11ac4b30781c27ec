"""
Listing domain module
"""
from .models import FileEntry, SortColumn, CacheKey
from .cache import ListingCache
from .service import ListingService, sort_entries

__all__ = [
    "FileEntry",
    "SortColumn",
    "CacheKey",
    "ListingCache",
    "ListingService",
    "sort_entries",
]
