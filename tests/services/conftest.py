"""Fixtures for service layer tests."""

import pytest

from worldgrid.services import VillageMapLoader, WorldGridRuntime
from worldgrid.storage import FileBlobStore, Storage


@pytest.fixture
def loader(blobs: FileBlobStore) -> VillageMapLoader:
    """Map loader reading from the temporary asset directory."""
    return VillageMapLoader(blobs)


@pytest.fixture
def runtime(storage: Storage, loader: VillageMapLoader) -> WorldGridRuntime:
    """Runtime backed by connected storage and local assets."""
    return WorldGridRuntime(storage.villages, loader)
