import sys
import os

import pytest

# Add src to path for internal imports
src_path = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'src')
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from price_calculator.config.settings import Settings
from price_calculator.engine.models import Product, Region
from price_calculator.services.catalog_service import CatalogService
from price_calculator.services.history_service import HistoryService
from price_calculator.services.store import LocalTableStore


@pytest.fixture
def store(tmp_path):
    return LocalTableStore(tmp_path / "data")


@pytest.fixture
def catalog(store):
    return CatalogService(store)


@pytest.fixture
def history(store):
    return HistoryService(store)


@pytest.fixture
def settings(tmp_path):
    data_dir = tmp_path / "data"
    return Settings(
        project_root=tmp_path,
        data_dir=data_dir,
        local_backup_path=tmp_path / "backup" / "auto_backup.json",
        backup_debounce_seconds=0.05,
        backup_status_poll_seconds=60,
    )


@pytest.fixture
def sofa():
    return Product(id="p-sofa", name="Sofa Minimalis", category="Sofa", base_price=100000, unit="unit")


@pytest.fixture
def kendal():
    return Region(id="b1", name="Kendal", price_multiplier=1.05, region_group="B")


@pytest.fixture
def kudus():
    return Region(id="a1", name="Kudus", price_multiplier=1.0, region_group="A")
