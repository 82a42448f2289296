"""Catalog API: product and category management with batch exports."""
