import asyncio
import json

import pytest

from price_calculator.errors import BackupFormatError
from price_calculator.services.backup_service import (
    BackupManager, BackupStatusMonitor, DebouncedTrigger, LocalSnapshot,
    dumps, export_backup, import_backup, parse_backup,
    CONNECTED, DISCONNECTED, UNKNOWN,
)
from price_calculator.services.schema import (
    PRODUCTS, PRODUCT_REGIONS, CUSTOMERS, CUSTOMER_PRICING_TIERS, PRICE_HISTORY, IMPORT_ORDER,
)
from price_calculator.services.store import LocalTableStore


@pytest.fixture
def populated(store, catalog):
    catalog.ensure_default_regions()
    catalog.add_product({"name": "Sofa", "category": "Sofa", "base_price": 100000, "unit": "unit"})
    customer = catalog.add_customer({"name": "Toko Jaya"})
    catalog.add_tier(customer.id, {"tier_name": "Gold", "discount_percentage": 5})
    store.insert(PRICE_HISTORY, {
        "customer_id": customer.id, "product_name": "Sofa", "product_unit": "unit",
        "region_name": "Kudus", "base_price": 100000, "region_price": 100000,
        "discounts": [{"label": "Toko Jaya - Gold", "amount": 5000, "source": "tier"}],
        "net_price": 95000, "margin_amount": 9500, "margin_type": "Cash", "final_price": 104500,
    })
    return store


def _ids(store, table):
    return sorted(row["id"] for row in store.select(table))


def test_export_then_import_round_trip(populated, tmp_path):
    text = dumps(export_backup(populated))
    raw = json.loads(text)
    assert raw["version"] == "2.0"
    assert set(raw) == {"version", "exportedAt", "customers", "priceHistory",
                        "customerPricingTiers", "products", "productRegions"}

    target = LocalTableStore(tmp_path / "restored")
    counts = import_backup(target, parse_backup(text))

    assert counts[PRODUCT_REGIONS] == 14
    for table in IMPORT_ORDER:
        assert target.select(table) == populated.select(table)


def test_repeated_import_does_not_duplicate(populated, tmp_path):
    doc = parse_backup(dumps(export_backup(populated)))
    target = LocalTableStore(tmp_path / "restored")
    import_backup(target, doc)
    import_backup(target, doc)
    for table in IMPORT_ORDER:
        assert _ids(target, table) == _ids(populated, table)


def test_legacy_backup_without_products(store):
    legacy = json.dumps({
        "version": "1.0",
        "exportedAt": "2024-06-01T00:00:00Z",
        "customers": [{"id": "c1", "name": "Toko Jaya", "created_at": "2024-01-01T00:00:00Z"}],
        "priceHistory": [],
        "customerPricingTiers": [],
    })
    doc = parse_backup(legacy)
    assert doc.products == [] and doc.product_regions == []

    counts = import_backup(store, doc)
    assert counts == {PRODUCTS: 0, PRODUCT_REGIONS: 0, CUSTOMERS: 1, PRICE_HISTORY: 0, CUSTOMER_PRICING_TIERS: 0}
    assert store.get(CUSTOMERS, "c1")["name"] == "Toko Jaya"


@pytest.mark.parametrize("text", [
    "not json at all",
    "[]",
    json.dumps({"version": "2.0", "customers": []}),
    json.dumps({"version": "2.0", "customers": "nope", "priceHistory": [], "customerPricingTiers": []}),
    json.dumps({"version": "2.0", "customers": [{"id": "c1"}], "priceHistory": [], "customerPricingTiers": []}),
])
def test_malformed_backup_rejected_before_any_write(store, text):
    events = []
    store.subscribe(lambda table, event: events.append((table, event)))
    with pytest.raises(BackupFormatError):
        parse_backup(text)
    assert events == []
    assert store.select(CUSTOMERS) == []


def test_import_follows_dependency_order(populated, tmp_path):
    doc = parse_backup(dumps(export_backup(populated)))
    target = LocalTableStore(tmp_path / "restored")
    order = []
    target.subscribe(lambda table, event: order.append(table))

    import_backup(target, doc)

    assert order == [PRODUCTS, PRODUCT_REGIONS, CUSTOMERS, PRICE_HISTORY, CUSTOMER_PRICING_TIERS]


def test_product_region_extra_columns_pass_through(store):
    doc = parse_backup(json.dumps({
        "version": "2.0", "customers": [], "priceHistory": [], "customerPricingTiers": [],
        "productRegions": [{"id": "x1", "name": "Jepara", "price_multiplier": 1.1,
                            "region": "B", "created_at": "2024-01-01T00:00:00Z"}],
    }))
    import_backup(store, doc)
    assert store.get(PRODUCT_REGIONS, "x1")["created_at"] == "2024-01-01T00:00:00Z"


def test_local_snapshot_save_load_clear(populated, tmp_path):
    snapshot = LocalSnapshot(tmp_path / "backup" / "auto_backup.json")
    assert snapshot.load() is None

    snapshot.save(export_backup(populated))
    loaded = snapshot.load()
    assert len(loaded.customers) == 1
    assert len(loaded.product_regions) == 14

    snapshot.path.write_text("{broken", encoding="utf-8")
    assert snapshot.load() is None

    snapshot.clear()
    assert not snapshot.path.exists()


def test_manager_backup_and_sync(populated, tmp_path):
    manager = BackupManager(populated, LocalSnapshot(tmp_path / "snap.json"))
    doc = manager.perform_backup()
    assert manager.last_backup_at == doc.exported_at

    populated.delete(PRICE_HISTORY, populated.select(PRICE_HISTORY)[0]["id"])
    counts = manager.sync_to_remote()

    assert counts[PRICE_HISTORY] == 1
    assert len(populated.select(PRICE_HISTORY)) == 1


def test_sync_without_snapshot_fails(store, tmp_path):
    manager = BackupManager(store, LocalSnapshot(tmp_path / "missing.json"))
    with pytest.raises(BackupFormatError):
        manager.sync_to_remote()


def test_manager_rebacks_up_after_store_changes(store, catalog, tmp_path):
    manager = BackupManager(store, LocalSnapshot(tmp_path / "snap.json"), quiet_period=0.05)

    async def scenario():
        await manager.start()
        assert manager.snapshot.load().customers == []
        catalog.add_customer({"name": "Toko Baru"})
        await asyncio.sleep(0.3)
        await manager.stop()

    asyncio.run(scenario())
    assert [c["name"] for c in manager.snapshot.load().customers] == ["Toko Baru"]


def test_status_monitor_transitions(store):
    monitor = BackupStatusMonitor(store, interval=60)
    assert monitor.status == UNKNOWN

    assert asyncio.run(monitor.check()) == CONNECTED

    store.ping = lambda: False
    assert asyncio.run(monitor.check()) == DISCONNECTED
    assert monitor.checked_at is not None


class TestDebouncedTrigger:

    def test_burst_of_notifications_runs_once(self):
        calls = []

        async def callback():
            calls.append(1)

        async def scenario():
            trigger = DebouncedTrigger(callback, 0.2)
            for _ in range(5):
                trigger.notify()
                await asyncio.sleep(0.01)
            assert calls == []
            await asyncio.sleep(0.5)
            await trigger.close()

        asyncio.run(scenario())
        assert calls == [1]

    def test_close_cancels_pending_timer(self):
        calls = []

        async def callback():
            calls.append(1)

        async def scenario():
            trigger = DebouncedTrigger(callback, 0.05)
            trigger.notify()
            assert trigger.pending
            await trigger.close()
            await asyncio.sleep(0.1)
            trigger.notify()
            await asyncio.sleep(0.1)

        asyncio.run(scenario())
        assert calls == []

    def test_runs_never_overlap_and_follow_up_is_coalesced(self):
        active = []
        max_active = []
        calls = []

        async def callback():
            active.append(1)
            max_active.append(len(active))
            calls.append(1)
            await asyncio.sleep(0.1)
            active.pop()

        async def scenario():
            trigger = DebouncedTrigger(callback, 0.01)
            trigger.notify()
            await asyncio.sleep(0.03)
            assert trigger.running
            # Two notifications while the first run is in progress
            trigger.notify()
            await asyncio.sleep(0.03)
            trigger.notify()
            await asyncio.sleep(0.4)
            await trigger.close()

        asyncio.run(scenario())
        assert max(max_active) == 1
        assert len(calls) == 2

    def test_notify_from_another_thread(self):
        calls = []

        async def callback():
            calls.append(1)

        async def scenario():
            trigger = DebouncedTrigger(callback, 0.02, asyncio.get_running_loop())
            await asyncio.to_thread(trigger.notify)
            await asyncio.sleep(0.15)
            await trigger.close()

        asyncio.run(scenario())
        assert calls == [1]

    def test_failing_callback_does_not_stop_trigger(self):
        calls = []

        async def callback():
            calls.append(1)
            raise RuntimeError("boom")

        async def scenario():
            trigger = DebouncedTrigger(callback, 0.01)
            trigger.notify()
            await asyncio.sleep(0.05)
            trigger.notify()
            await asyncio.sleep(0.05)
            await trigger.close()

        asyncio.run(scenario())
        assert len(calls) == 2
