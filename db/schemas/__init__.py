"""
Database schemas package.

This module re-exports the Pydantic schemas for easy importing:
    from db.schemas import PackRequest, PackResolution, ...
"""

from db.schemas.pack import (
    PackFileEntry,
    PackIndex,
    PackListing,
    PackRequest,
    PackResolution,
    ProviderConfig,
    ProviderFile,
    ResolvedPackFile,
)

__all__ = [
    "PackFileEntry",
    "PackIndex",
    "PackListing",
    "PackRequest",
    "PackResolution",
    "ProviderConfig",
    "ProviderFile",
    "ResolvedPackFile",
]
