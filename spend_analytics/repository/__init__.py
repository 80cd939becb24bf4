"""
Repository Module
"""
from .invoices import InvoiceRepository, as_date

__all__ = [
    "InvoiceRepository",
    "as_date",
]
