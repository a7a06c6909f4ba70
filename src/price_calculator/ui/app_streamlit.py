"""
Streamlit UI for the furniture sale price calculator.

Features:
- Calculator: product/region/customer tier, stacked discounts, cash/tempo margin
- Summary with save to history and Excel/PDF export
- Price list (history grouped by product) with edit, delete and duplicate
- Customer, pricing tier and product management
- Backup download/restore and the AI pricing assistant
"""
import streamlit as st
import pandas as pd
import sys
from pathlib import Path
from datetime import datetime

# Add src to path for imports
src_path = Path(__file__).parent.parent.parent
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from price_calculator.api.state import build_state
from price_calculator.config.settings import get_settings, configure_logging, TEMPO_TERMS, DEFAULT_TEMPO_TERM
from price_calculator.engine.calculator import CalculatorState
from price_calculator.engine.discount_stack import DiscountStack
from price_calculator.engine.models import ProfitMargin, PERCENTAGE, NOMINAL, CASH, TEMPO
from price_calculator.engine.tier_resolver import TierSelection
from price_calculator.errors import PriceCalculatorError, ValidationFailed, AssistantError
from price_calculator.services import export_service
from price_calculator.services.backup_service import dumps, export_backup
from price_calculator.services.export_service import format_rupiah
from price_calculator.services.history_service import group_by_product
from price_calculator.data.sample_data import FURNITURE_CATEGORIES


st.set_page_config(
    page_title="Kalkulator Harga Jual",
    layout="wide",
    initial_sidebar_state="expanded"
)


@st.cache_resource
def get_services():
    """Get cached services; seeds regions and writes the startup backup."""
    settings = get_settings()
    configure_logging(settings.log_level)
    services = build_state(settings)
    services.catalog.ensure_default_regions()
    services.backups.perform_backup()
    return services


try:
    services = get_services()
except PriceCalculatorError as e:
    st.error(f"System Error: {e}")
    st.stop()


def after_write():
    """Refresh the local snapshot after any change made from the UI."""
    try:
        services.backups.perform_backup()
    except PriceCalculatorError as e:
        st.toast(f"Backup gagal: {e}")


def show_errors(error: ValidationFailed):
    for field, message in error.errors.items():
        st.error(f"{field}: {message}")


# ============================================================================
# SESSION STATE
# ============================================================================
if 'discounts' not in st.session_state:
    st.session_state.discounts = DiscountStack()
if 'chat' not in st.session_state:
    st.session_state.chat = []

# A duplicated history record is applied before any widget is created
pending = st.session_state.pop('pending_state', None)
if pending is not None:
    for key in [k for k in st.session_state.keys() if str(k).startswith('disc_')]:
        del st.session_state[key]
    st.session_state.sel_product = pending.product.id if pending.product else None
    st.session_state.sel_region = pending.region.id if pending.region else None
    customer = pending.selection.customer
    st.session_state.sel_customer = customer.id if customer else None
    st.session_state.sel_tier = pending.selection.tier_id
    st.session_state.discounts = pending.discounts
    st.session_state.margin_payment = pending.margin.payment_type
    st.session_state.margin_tempo = pending.margin.tempo_term_days or DEFAULT_TEMPO_TERM
    st.session_state.margin_kind = pending.margin.margin_kind
    st.session_state.margin_value = float(pending.margin.value)

products = services.catalog.list_products()
regions = services.catalog.list_regions()
customers = services.catalog.list_customers()
products_by_id = {p.id: p for p in products}
regions_by_id = {r.id: r for r in regions}
customers_by_id = {c.id: c for c in customers}

for key, lookup in (('sel_product', products_by_id), ('sel_region', regions_by_id), ('sel_customer', customers_by_id)):
    if st.session_state.get(key) not in lookup:
        st.session_state[key] = None


# ============================================================================
# SIDEBAR: Backup Status
# ============================================================================
with st.sidebar:
    st.header("💾 Backup")
    with st.container(border=True):
        if services.store.ping():
            st.success(f"Terhubung ({services.settings.store_backend})")
        else:
            st.error("Tidak terhubung")
        last = services.backups.last_backup_at
        st.caption(f"Backup terakhir: {last[:19].replace('T', ' ') if last else '-'}")

    st.divider()
    st.metric("Produk", len(products))
    st.metric("Pelanggan", len(customers))


# ============================================================================
# MAIN CONTENT: TABBED INTERFACE
# ============================================================================
st.title("Kalkulator Harga Jual")
st.caption(f"v1.0 | {datetime.now().strftime('%Y-%m-%d')}")

tab1, tab2, tab3, tab4, tab5 = st.tabs(
    ["🧮 Kalkulator", "📋 Daftar Harga", "👥 Pelanggan & Produk", "💾 Backup", "🤖 Asisten AI"]
)


# ============================================================================
# TAB 1: CALCULATOR
# ============================================================================
with tab1:
    col1, col2 = st.columns([1.6, 1.4], gap="large")

    with col1:
        with st.container(border=True):
            st.markdown("##### 🪑 Produk & Region")
            st.selectbox(
                "Produk", options=[None] + list(products_by_id), key="sel_product",
                format_func=lambda pid: "Pilih produk..." if pid is None else
                f"{products_by_id[pid].name} ({format_rupiah(products_by_id[pid].base_price)}/{products_by_id[pid].unit})",
            )
            st.selectbox(
                "Region", options=[None] + list(regions_by_id), key="sel_region",
                format_func=lambda rid: "Pilih region..." if rid is None else
                f"{regions_by_id[rid].name} (Region {regions_by_id[rid].region_group}, x{regions_by_id[rid].price_multiplier})",
            )

        with st.container(border=True):
            st.markdown("##### 👤 Pelanggan")
            st.selectbox(
                "Pelanggan", options=[None] + list(customers_by_id), key="sel_customer",
                format_func=lambda cid: "Tanpa pelanggan" if cid is None else customers_by_id[cid].name,
            )
            customer = customers_by_id.get(st.session_state.sel_customer)
            tier_options = [None] + [t.id for t in customer.pricing_tiers] if customer else [None]
            if st.session_state.get('sel_tier') not in tier_options:
                st.session_state.sel_tier = None
            tiers_by_id = {t.id: t for t in customer.pricing_tiers} if customer else {}
            st.selectbox(
                "Tier Harga", options=tier_options, key="sel_tier", disabled=customer is None,
                format_func=lambda tid: "Tanpa tier" if tid is None else
                f"{tiers_by_id[tid].tier_name} ({tiers_by_id[tid].discount_percentage:g}%)",
            )

        selection = TierSelection(customer, st.session_state.sel_tier)

        with st.container(border=True):
            st.markdown("##### 🏷️ Diskon Bertingkat")
            stack: DiscountStack = st.session_state.discounts
            for discount in stack.items:
                c1, c2, c3, c4, c5 = st.columns([0.6, 2, 1.4, 1.6, 0.6])
                enabled = c1.checkbox("Aktif", value=discount.enabled, key=f"disc_enabled_{discount.id}",
                                      label_visibility="collapsed")
                label = c2.text_input("Label", value=discount.label, key=f"disc_label_{discount.id}",
                                      label_visibility="collapsed")
                kind = c3.selectbox("Jenis", [PERCENTAGE, NOMINAL], index=[PERCENTAGE, NOMINAL].index(discount.kind),
                                    key=f"disc_kind_{discount.id}", label_visibility="collapsed",
                                    format_func=lambda k: "%" if k == PERCENTAGE else "Rp")
                value = c4.number_input("Nilai", min_value=0.0, value=float(discount.value), step=1.0,
                                        key=f"disc_value_{discount.id}", label_visibility="collapsed")
                stack.update(discount.id, label=label, kind=kind, value=value, enabled=enabled)
                if c5.button("🗑️", key=f"disc_remove_{discount.id}", disabled=len(stack) <= 1):
                    stack.remove(discount.id)
                    st.rerun()

            if st.button("➕ Tambah Diskon", disabled=not stack.can_add):
                stack.add()
                st.rerun()
            if not stack.can_add:
                st.caption(f"Maksimal {stack.limit} diskon")

        with st.container(border=True):
            st.markdown("##### 💰 Margin")
            c1, c2 = st.columns(2)
            payment = c1.radio("Pembayaran", [CASH, TEMPO], key="margin_payment", horizontal=True,
                               format_func=lambda p: "Cash" if p == CASH else "Tempo")
            tempo = None
            if payment == TEMPO:
                tempo = c2.selectbox("Jangka Tempo (hari)", TEMPO_TERMS, key="margin_tempo",
                                     index=TEMPO_TERMS.index(DEFAULT_TEMPO_TERM))
            c3, c4 = st.columns(2)
            margin_kind = c3.radio("Jenis Margin", [PERCENTAGE, NOMINAL], key="margin_kind", horizontal=True,
                                   format_func=lambda k: "Persentase" if k == PERCENTAGE else "Nominal")
            margin_value = c4.number_input("Nilai Margin", min_value=0.0, value=10.0, step=1.0, key="margin_value")
            margin = ProfitMargin(payment_type=payment, margin_kind=margin_kind, value=margin_value,
                                  tempo_term_days=tempo)

    state = CalculatorState(
        product=products_by_id.get(st.session_state.sel_product),
        region=regions_by_id.get(st.session_state.sel_region),
        selection=selection,
        discounts=stack,
        margin=margin,
    )
    calc = state.calculate(services.engine)

    with col2:
        st.subheader("Ringkasan Harga")
        with st.container(border=True):
            if calc is None:
                st.info("Pilih produk dan region untuk menghitung harga.")
            else:
                m1, m2 = st.columns(2)
                m1.metric("Harga Pricelist", format_rupiah(calc.region_price))
                m2.metric("Harga Jual Final", format_rupiah(calc.final_price))

                rows = [{'Keterangan': 'Harga Dasar', 'Jumlah': format_rupiah(calc.base_price)},
                        {'Keterangan': 'Harga Pricelist', 'Jumlah': format_rupiah(calc.region_price)}]
                rows += [{'Keterangan': line.label, 'Jumlah': f"-{format_rupiah(line.amount)}"} for line in calc.discounts]
                rows += [
                    {'Keterangan': 'Total Potongan', 'Jumlah': f"-{format_rupiah(calc.total_discount)}"},
                    {'Keterangan': 'Harga Nett', 'Jumlah': format_rupiah(calc.net_price)},
                    {'Keterangan': 'Margin', 'Jumlah': f"+{format_rupiah(calc.margin_amount)}"},
                ]
                st.dataframe(pd.DataFrame(rows), use_container_width=True, hide_index=True)

                tier_line = calc.tier_line
                start = calc.region_price - (tier_line.amount if tier_line else 0)
                preview = [p for p in stack.running_prices(start) if p is not None]
                if preview:
                    st.caption("Harga berjalan: " + " → ".join(format_rupiah(p) for p in preview))

                with st.expander("🔍 Detail Perhitungan"):
                    st.code(calc.get_trace_text())

                st.divider()
                notes = st.text_input("Catatan", key="save_notes")
                if st.button("💾 Simpan ke Riwayat", type="primary", use_container_width=True):
                    try:
                        services.history.save_calculation(
                            calc, state.product, state.region, margin,
                            customer_id=customer.id if customer else None, notes=notes,
                        )
                        after_write()
                        st.toast("Kalkulasi tersimpan")
                    except PriceCalculatorError as e:
                        st.error(f"Gagal menyimpan: {e}")

                b1, b2 = st.columns(2)
                b1.download_button(
                    "📥 Excel",
                    data=export_service.calculation_to_excel(state.product, state.region, calc, margin),
                    file_name=export_service.calculation_filename(state.product, "xlsx"),
                    mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
                    use_container_width=True,
                )
                b2.download_button(
                    "📄 PDF",
                    data=export_service.calculation_to_pdf(state.product, state.region, calc, margin),
                    file_name=export_service.calculation_filename(state.product, "pdf"),
                    mime="application/pdf",
                    use_container_width=True,
                )


# ============================================================================
# TAB 2: PRICE LIST / HISTORY
# ============================================================================
with tab2:
    st.subheader("📋 Daftar Harga")

    c1, c2, c3 = st.columns([2, 1.5, 1])
    search = c1.text_input("Cari", placeholder="Produk, region atau pelanggan...", label_visibility="collapsed")
    customer_filter = c2.selectbox(
        "Pelanggan", ["all", "none"] + list(customers_by_id), label_visibility="collapsed",
        format_func=lambda v: {"all": "Semua pelanggan", "none": "Tanpa pelanggan"}.get(v) or customers_by_id[v].name,
    )
    payment_filter = c3.selectbox("Pembayaran", ["all", "cash", "tempo"], label_visibility="collapsed",
                                  format_func=lambda v: {"all": "Semua", "cash": "Cash", "tempo": "Tempo"}[v])

    entries = services.history.list_history(
        customer_names=services.catalog.customer_names(),
        customer_filter=customer_filter,
        search=search,
        payment_filter=payment_filter,
    )

    if entries:
        e1, e2, _ = st.columns([1, 1, 3])
        e1.download_button("📥 Excel", data=export_service.history_to_excel(entries),
                           file_name=export_service.history_filename("xlsx"),
                           mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet")
        e2.download_button("📄 PDF", data=export_service.history_to_pdf(entries),
                           file_name=export_service.history_filename("pdf"), mime="application/pdf")
    else:
        st.info("Belum ada riwayat kalkulasi.")

    for product_name, group in group_by_product(entries).items():
        st.markdown(f"#### {product_name}")
        for entry in group:
            record = entry.record
            title = (f"{record.region_name} | {entry.customer_name or 'Tanpa pelanggan'} | "
                     f"{record.margin_type} | {format_rupiah(record.final_price)}")
            with st.expander(title):
                st.caption(f"Dibuat: {record.created_at[:19].replace('T', ' ')}")
                for line in record.discount_lines:
                    st.caption(f"{line.label}: -{format_rupiah(line.amount)}")
                st.caption(f"Harga Nett: {format_rupiah(record.net_price)}")

                with st.form(f"edit_{record.id}"):
                    f1, f2 = st.columns(2)
                    final_price = f1.number_input("Harga Final", min_value=0.0, value=float(record.final_price))
                    margin_amount = f2.number_input("Margin", min_value=0.0, value=float(record.margin_amount))
                    edit_notes = st.text_input("Catatan", value=record.notes or "")
                    if st.form_submit_button("💾 Simpan Perubahan"):
                        try:
                            services.history.edit_record(record.id, {
                                'final_price': final_price,
                                'margin_amount': margin_amount,
                                'notes': edit_notes,
                            })
                            after_write()
                            st.rerun()
                        except ValidationFailed as e:
                            show_errors(e)

                a1, a2 = st.columns(2)
                if a1.button("📋 Duplikat ke Kalkulator", key=f"dup_{record.id}"):
                    st.session_state.pending_state = services.history.duplicate_into_calculator(
                        record, products, regions, customers
                    )
                    st.rerun()
                if a2.button("🗑️ Hapus", key=f"del_{record.id}"):
                    services.history.delete_record(record.id)
                    after_write()
                    st.rerun()


# ============================================================================
# TAB 3: CUSTOMERS & PRODUCTS
# ============================================================================
with tab3:
    col1, col2 = st.columns(2, gap="large")

    with col1:
        st.subheader("👥 Pelanggan")
        with st.form("add_customer", clear_on_submit=True):
            name = st.text_input("Nama *")
            phone = st.text_input("Telepon")
            email = st.text_input("Email")
            address = st.text_area("Alamat", height=68)
            customer_notes = st.text_area("Catatan", height=68)
            if st.form_submit_button("➕ Tambah Pelanggan"):
                try:
                    services.catalog.add_customer({
                        'name': name, 'phone': phone, 'email': email,
                        'address': address, 'notes': customer_notes,
                    })
                    after_write()
                    st.rerun()
                except ValidationFailed as e:
                    show_errors(e)

        for c in customers:
            with st.expander(f"{c.name} ({len(c.pricing_tiers)} tier)"):
                st.caption(" | ".join(v for v in (c.phone, c.email, c.address) if v) or "-")
                if c.pricing_tiers:
                    st.dataframe(pd.DataFrame([
                        {'Tier': t.tier_name, 'Diskon %': t.discount_percentage, 'Keterangan': t.description or ''}
                        for t in c.pricing_tiers
                    ]), use_container_width=True, hide_index=True)
                with st.form(f"tier_{c.id}", clear_on_submit=True):
                    t1, t2 = st.columns(2)
                    tier_name = t1.text_input("Nama Tier")
                    tier_pct = t2.number_input("Diskon %", min_value=0.0, max_value=100.0, value=0.0)
                    if st.form_submit_button("➕ Tambah Tier"):
                        try:
                            services.catalog.add_tier(c.id, {'tier_name': tier_name, 'discount_percentage': tier_pct})
                            after_write()
                            st.rerun()
                        except ValidationFailed as e:
                            show_errors(e)
                for t in c.pricing_tiers:
                    if st.button(f"🗑️ Hapus tier {t.tier_name}", key=f"del_tier_{t.id}"):
                        services.catalog.delete_tier(t.id)
                        after_write()
                        st.rerun()
                if st.button("🗑️ Hapus Pelanggan", key=f"del_customer_{c.id}"):
                    services.catalog.delete_customer(c.id)
                    after_write()
                    st.rerun()

    with col2:
        st.subheader("🪑 Produk")
        with st.form("add_product", clear_on_submit=True):
            p_name = st.text_input("Nama Produk *")
            p1, p2, p3 = st.columns(3)
            p_category = p1.selectbox("Kategori", FURNITURE_CATEGORIES)
            p_price = p2.number_input("Harga Dasar", min_value=0.0, step=1000.0)
            p_unit = p3.text_input("Satuan", value="pcs")
            if st.form_submit_button("➕ Tambah Produk"):
                try:
                    services.catalog.add_product({
                        'name': p_name, 'category': p_category, 'base_price': p_price, 'unit': p_unit,
                    })
                    after_write()
                    st.rerun()
                except ValidationFailed as e:
                    show_errors(e)

        if products:
            st.dataframe(pd.DataFrame([
                {'Produk': p.name, 'Kategori': p.category, 'Harga Dasar': format_rupiah(p.base_price), 'Satuan': p.unit}
                for p in products
            ]), use_container_width=True, hide_index=True, height=400)


# ============================================================================
# TAB 4: BACKUP
# ============================================================================
with tab4:
    st.subheader("💾 Backup & Restore")
    doc = export_backup(services.store)
    st.dataframe(pd.DataFrame([{'Koleksi': k, 'Jumlah': v} for k, v in doc.counts().items()]),
                 hide_index=True)

    b1, b2, b3 = st.columns(3)
    b1.download_button("📥 Unduh Backup", data=dumps(doc),
                       file_name=f"price-calculator-backup-{datetime.now():%Y-%m-%d}.json",
                       mime="application/json")
    if b2.button("🔄 Backup Lokal Sekarang"):
        after_write()
        st.toast("Backup lokal diperbarui")
    if b3.button("⬆️ Sinkron ke Server"):
        try:
            counts = services.backups.sync_to_remote()
            st.success(f"Sinkron selesai: {counts}")
        except PriceCalculatorError as e:
            st.error(str(e))

    uploaded = st.file_uploader("Restore dari file backup", type=["json"])
    if uploaded is not None and st.button("♻️ Restore"):
        try:
            counts = services.backups.restore(uploaded.getvalue())
            st.success(f"Restore selesai: {counts}")
        except PriceCalculatorError as e:
            st.error(f"Restore gagal: {e}")


# ============================================================================
# TAB 5: AI ASSISTANT
# ============================================================================
with tab5:
    st.subheader("🤖 Asisten Harga AI")
    if services.assistant is None:
        st.info("Asisten AI belum dikonfigurasi (PRICE_CALC_ASSISTANT_URL).")
    else:
        for message in st.session_state.chat:
            with st.chat_message(message['role']):
                st.markdown(message['content'])

        prompt = st.chat_input("Tanyakan strategi harga...")
        if prompt:
            st.session_state.chat.append({'role': 'user', 'content': prompt})
            with st.chat_message('user'):
                st.markdown(prompt)
            with st.chat_message('assistant'):
                parts = []

                def collect():
                    for delta in services.assistant.stream_chat(st.session_state.chat, products, customers):
                        parts.append(delta)
                        yield delta

                try:
                    st.write_stream(collect())
                except AssistantError as e:
                    st.error(str(e))
                if parts:
                    st.session_state.chat.append({'role': 'assistant', 'content': ''.join(parts)})
