"""Pytest configuration and fixtures."""
import os

# keep wallet.api from creating db.json in the working directory on import
os.environ["DATA_FILE"] = ""

import pytest

from wallet.catalog import CatalogService
from wallet.service import WalletService
from wallet.storage import RecordStore


@pytest.fixture
def store():
    """In-memory store seeded with the admin, one artist and one approved song earning 1250."""
    return RecordStore()


@pytest.fixture
def empty_store():
    return RecordStore(seed=False)


@pytest.fixture
def wallet(store):
    return WalletService(store)


@pytest.fixture
def catalog(store):
    return CatalogService(store)
