"""
Seed data: the delivery regions every installation starts with, plus a small
sample product list for demos.
"""

# Region A ships at list price, Region B adds 5%
DEFAULT_REGIONS = [
    {"id": "a1", "name": "Kudus", "price_multiplier": 1.0, "region": "A"},
    {"id": "a2", "name": "Semarang", "price_multiplier": 1.0, "region": "A"},
    {"id": "a3", "name": "Pati", "price_multiplier": 1.0, "region": "A"},
    {"id": "a4", "name": "Rembang", "price_multiplier": 1.0, "region": "A"},
    {"id": "b1", "name": "Kendal", "price_multiplier": 1.05, "region": "B"},
    {"id": "b2", "name": "Kaliwungu", "price_multiplier": 1.05, "region": "B"},
    {"id": "b3", "name": "Batang", "price_multiplier": 1.05, "region": "B"},
    {"id": "b4", "name": "Pekalongan", "price_multiplier": 1.05, "region": "B"},
    {"id": "b5", "name": "Tuban", "price_multiplier": 1.05, "region": "B"},
    {"id": "b6", "name": "Bangilan", "price_multiplier": 1.05, "region": "B"},
    {"id": "b7", "name": "Bojonegoro", "price_multiplier": 1.05, "region": "B"},
    {"id": "b8", "name": "Blora", "price_multiplier": 1.05, "region": "B"},
    {"id": "b9", "name": "Ngawi", "price_multiplier": 1.05, "region": "B"},
    {"id": "b10", "name": "Madiun", "price_multiplier": 1.05, "region": "B"},
]

SAMPLE_PRODUCTS = [
    {"name": "Sofa Minimalis 3 Dudukan", "category": "Sofa", "base_price": 3500000, "unit": "unit"},
    {"name": "Kursi Makan Jati", "category": "Kursi", "base_price": 650000, "unit": "unit"},
    {"name": "Meja Makan Jati 120x60", "category": "Meja", "base_price": 2750000, "unit": "unit"},
    {"name": "Lemari Pakaian 3 Pintu", "category": "Lemari", "base_price": 4200000, "unit": "unit"},
    {"name": "Tempat Tidur 160x200", "category": "Tempat Tidur", "base_price": 3900000, "unit": "unit"},
    {"name": "Rak Buku 5 Susun", "category": "Rak Buku", "base_price": 850000, "unit": "unit"},
    {"name": "Meja TV Gantung", "category": "Meja TV", "base_price": 1250000, "unit": "unit"},
    {"name": "Kitchen Set Atas", "category": "Dapur", "base_price": 1800000, "unit": "meter"},
]

FURNITURE_CATEGORIES = [
    "Sofa", "Kursi", "Meja", "Lemari", "Tempat Tidur",
    "Lampu", "Rak Buku", "Meja TV", "Kamar Mandi", "Dapur",
]
