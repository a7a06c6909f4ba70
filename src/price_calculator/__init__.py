"""
Price Calculator Package

Sales price calculator for furniture and building material retail.
Resolves a sale price using Base → Region → Tier/Stacked Discounts → Margin pipeline.
"""

__version__ = "1.0.0"
