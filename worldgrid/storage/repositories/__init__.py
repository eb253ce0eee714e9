"""Repository layer for worldgrid storage.

Repositories provide domain-specific data access on top of the key-value
store:
- VillageRepository: village metadata and the grid-cell reverse index
"""

from .base import BaseRepository
from .village import VillageRepository, VillageStoreError, GridOccupiedError

__all__ = [
    "BaseRepository",
    "VillageRepository",
    "VillageStoreError",
    "GridOccupiedError",
]
