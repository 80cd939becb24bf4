"""
Car-Wash Spend Analytics

Read-only reporting service over vendor invoices and invoice lines.
"""

__version__ = "1.0.0"
