"""
History Service - persisted price calculations and the price list.

Forward: a completed PriceCalculation becomes a denormalized history row.
Backward: editing a saved final price/margin re-derives the net price only;
the stored discount line items are left as they were and may no longer add
up to the new net price.
"""
import logging
from dataclasses import dataclass
from typing import Optional

import pandas as pd

from ..engine.calculator import CalculatorState
from ..engine.discount_stack import DiscountStack, default_discounts
from ..engine.margin import margin_label, parse_margin_label, is_tempo_label
from ..engine.models import (
    Product, Region, Customer, Discount, ProfitMargin, PriceCalculation,
    NOMINAL, TEMPO, SOURCE_TIER,
)
from ..engine.tier_resolver import TierSelection
from ..errors import RecordNotFound
from .schema import PriceHistoryRow, PRICE_HISTORY
from .store import TableStore
from .validation import HistoryEditInput, validate_input

logger = logging.getLogger(__name__)


@dataclass
class HistoryEntry:
    """A history row with its customer's current name resolved."""
    record: PriceHistoryRow
    customer_name: Optional[str] = None


def build_history_row(
    calculation: PriceCalculation,
    product: Product,
    region: Region,
    margin: ProfitMargin,
    customer_id: Optional[str] = None,
    notes: Optional[str] = None,
) -> dict:
    """Map a calculation plus its context 1:1 onto a history row."""
    return {
        'customer_id': customer_id,
        'product_name': product.name,
        'product_unit': product.unit,
        'region_name': region.name,
        'base_price': calculation.base_price,
        'region_price': calculation.region_price,
        'discounts': [line.to_dict() for line in calculation.discounts],
        'net_price': calculation.net_price,
        'margin_amount': calculation.margin_amount,
        'margin_type': margin_label(margin),
        'payment_type': margin.payment_type,
        'tempo_term_days': margin.tempo_term_days,
        'final_price': calculation.final_price,
        'notes': notes or None,
    }


def record_payment(record: PriceHistoryRow) -> tuple[str, Optional[int]]:
    """Payment type and tempo term, preferring the structured columns."""
    if record.payment_type:
        return record.payment_type, record.tempo_term_days
    return parse_margin_label(record.margin_type)


def split_tier_line(record: PriceHistoryRow, customer_found: bool):
    """
    Separate the tier line item from the manual ones.

    Tagged rows are split by source. Rows saved before lines were tagged fall
    back to position: when the customer still exists, item #0 is the tier.
    """
    lines = record.discount_lines
    if any(line.source for line in lines):
        tier_lines = [line for line in lines if line.source == SOURCE_TIER]
        manual = [line for line in lines if line.source != SOURCE_TIER]
        return (tier_lines[0] if tier_lines else None), manual
    if customer_found and lines:
        return lines[0], lines[1:]
    return None, lines


class HistoryService:
    """Service for saving, listing, editing and reloading price history."""

    def __init__(self, store: TableStore, limit: int = 100):
        self.store = store
        self.limit = limit

    def save_calculation(
        self,
        calculation: PriceCalculation,
        product: Product,
        region: Region,
        margin: ProfitMargin,
        customer_id: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> PriceHistoryRow:
        row = self.store.insert(
            PRICE_HISTORY,
            build_history_row(calculation, product, region, margin, customer_id, notes),
        )
        logger.info("Saved calculation for %s / %s: %s", product.name, region.name, row['final_price'])
        return PriceHistoryRow.model_validate(row)

    def get_record(self, record_id: str) -> PriceHistoryRow:
        row = self.store.get(PRICE_HISTORY, record_id)
        if row is None:
            raise RecordNotFound(PRICE_HISTORY, record_id)
        return PriceHistoryRow.model_validate(row)

    def list_history(
        self,
        customer_names: Optional[dict[str, str]] = None,
        customer_filter: str = "all",
        search: Optional[str] = None,
        payment_filter: str = "all",
        limit: Optional[int] = None,
    ) -> list[HistoryEntry]:
        """
        List history newest first.

        customer_filter: "all", "none" (no customer) or a customer id.
        payment_filter: "all", "cash" or "tempo".
        """
        names = customer_names or {}
        rows = self.store.select(PRICE_HISTORY, order_by='created_at', descending=True)

        entries = []
        for row in rows:
            record = PriceHistoryRow.model_validate(row)
            name = names.get(record.customer_id, "Unknown") if record.customer_id else None
            entries.append(HistoryEntry(record=record, customer_name=name))

        if customer_filter == "none":
            entries = [e for e in entries if not e.record.customer_id]
        elif customer_filter != "all":
            entries = [e for e in entries if e.record.customer_id == customer_filter]

        if payment_filter in ("cash", "tempo"):
            want_tempo = payment_filter == "tempo"
            entries = [e for e in entries if is_tempo_label(e.record.margin_type) == want_tempo]

        if search:
            needle = search.lower()
            entries = [
                e for e in entries
                if needle in e.record.product_name.lower()
                or needle in e.record.region_name.lower()
                or (e.customer_name and needle in e.customer_name.lower())
            ]

        limit = self.limit if limit is None else limit
        return entries[:limit] if limit else entries

    def edit_record(self, record_id: str, data: dict) -> PriceHistoryRow:
        """
        Apply a direct edit of final price and margin.

        net_price is re-derived as final_price - margin_amount; a negative
        result is rejected. Stored discount line items are not touched.
        """
        form = validate_input(HistoryEditInput, data)
        changes = {
            'final_price': form.final_price,
            'margin_amount': form.margin_amount,
            'net_price': form.net_price,
        }
        if 'notes' in form.model_fields_set:
            changes['notes'] = form.notes
        if form.margin_type:
            payment_type, tempo_days = parse_margin_label(form.margin_type)
            changes.update(margin_type=form.margin_type, payment_type=payment_type, tempo_term_days=tempo_days)

        row = self.store.update(PRICE_HISTORY, record_id, changes)
        logger.info("History %s edited: final=%s net=%s", record_id, form.final_price, form.net_price)
        return PriceHistoryRow.model_validate(row)

    def delete_record(self, record_id: str) -> bool:
        return self.store.delete(PRICE_HISTORY, record_id)

    def duplicate_into_calculator(
        self,
        record: PriceHistoryRow,
        products: list[Product],
        regions: list[Region],
        customers: list[Customer],
    ) -> CalculatorState:
        """
        Rebuild live calculator state from a saved record.

        Product and region are matched by stored name, the customer by id.
        Restored manual discounts and margin are nominal amounts, since the
        record only keeps the amounts that were applied. A tier is reselected
        only when the record shows one was applied. Legacy rows assume it was.
        """
        product = next((p for p in products if p.name == record.product_name), None)
        region = next((r for r in regions if r.name == record.region_name), None)
        customer = next((c for c in customers if c.id == record.customer_id), None) if record.customer_id else None

        tier_line, manual_lines = split_tier_line(record, customer is not None)

        # Rows with tagged lines or structured payment columns record whether a tier was applied.
        tagged = bool(record.payment_type) or any(line.source for line in record.discount_lines)
        selection = TierSelection(customer)
        if customer is not None and customer.pricing_tiers and not (tagged and tier_line is None):
            tier = None
            if tier_line is not None:
                tier = next(
                    (t for t in customer.pricing_tiers
                     if tier_line.label in (t.tier_name, f"{customer.name} - {t.tier_name}")),
                    None,
                )
            selection.select_tier((tier or customer.pricing_tiers[0]).id)

        if manual_lines:
            discounts = DiscountStack([
                Discount(id=i + 1, label=line.label, kind=NOMINAL, value=line.amount, enabled=True)
                for i, line in enumerate(manual_lines)
            ])
        else:
            discounts = DiscountStack(default_discounts())

        payment_type, tempo_days = record_payment(record)
        margin = ProfitMargin(
            payment_type=payment_type,
            margin_kind=NOMINAL,
            value=record.margin_amount,
            tempo_term_days=tempo_days if payment_type == TEMPO else None,
        )

        return CalculatorState(
            product=product,
            region=region,
            selection=selection,
            discounts=discounts,
            margin=margin,
        )


def history_frame(entries: list[HistoryEntry]) -> pd.DataFrame:
    """Flatten history entries into a DataFrame, one row per record."""
    columns = [
        'id', 'created_at', 'product_name', 'product_unit', 'region_name', 'customer',
        'base_price', 'region_price', 'discounts', 'total_discount', 'net_price',
        'margin_amount', 'margin_type', 'final_price', 'notes',
    ]
    rows = []
    for entry in entries:
        record = entry.record
        rows.append({
            'id': record.id,
            'created_at': record.created_at,
            'product_name': record.product_name,
            'product_unit': record.product_unit,
            'region_name': record.region_name,
            'customer': entry.customer_name,
            'base_price': record.base_price,
            'region_price': record.region_price,
            'discounts': record.discount_lines,
            'total_discount': record.total_discount,
            'net_price': record.net_price,
            'margin_amount': record.margin_amount,
            'margin_type': record.margin_type,
            'final_price': record.final_price,
            'notes': record.notes,
        })
    return pd.DataFrame(rows, columns=columns)


def group_by_product(entries: list[HistoryEntry]) -> dict[str, list[HistoryEntry]]:
    """Price list view: entries grouped by product name, first-seen order."""
    if not entries:
        return {}
    df = history_frame(entries)
    return {
        name: [entries[i] for i in group.index]
        for name, group in df.groupby('product_name', sort=False)
    }
