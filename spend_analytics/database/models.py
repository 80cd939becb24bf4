"""
Database Models - Vendor Invoices

Read-only mappings of the two tables the dashboard reports on:

- Invoice: one vendor bill per row (date, vendor source, site location, total)
- InvoiceLine: purchased items/services on an invoice, each carrying its own
  category and line total

Rows are written by the invoice ingestion pipeline; this service only reads.
"""

from datetime import datetime, date
from decimal import Decimal
from typing import Optional, List

from sqlalchemy import (
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all database models"""
    pass


class Invoice(Base):
    """
    Invoice Table

    One vendor bill. ``invoice_total`` is the billed amount as extracted from
    the document and is not reconciled against the sum of its lines.
    """
    __tablename__ = "invoices"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    invoice_date: Mapped[Optional[date]] = mapped_column(Date)
    source: Mapped[Optional[str]] = mapped_column(String(255))
    invoice_total: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2))
    location: Mapped[Optional[str]] = mapped_column(String(255))
    email_subject: Mapped[Optional[str]] = mapped_column(Text)
    pdf_url: Mapped[Optional[str]] = mapped_column(Text)
    status: Mapped[Optional[str]] = mapped_column(String(50))
    invoice_number: Mapped[Optional[str]] = mapped_column(String(100))
    vendor_name: Mapped[Optional[str]] = mapped_column(String(255))
    subtotal: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2))
    tax: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2))
    shipping: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2))
    total: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2))

    lines: Mapped[List["InvoiceLine"]] = relationship(back_populates="invoice")

    __table_args__ = (
        Index("ix_invoices_invoice_date", "invoice_date"),
        Index("ix_invoices_location", "location"),
    )


class InvoiceLine(Base):
    """
    Invoice Line Table

    ``line_total`` is stored as billed; it is not guaranteed to equal
    ``qty * unit_price``. Categories containing "ignore" mark lines that are
    excluded from spend reporting.
    """
    __tablename__ = "invoice_lines"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    invoice_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("invoices.id"), nullable=False
    )
    line_number: Mapped[Optional[int]] = mapped_column(Integer)
    sku: Mapped[Optional[str]] = mapped_column(String(100))
    description: Mapped[Optional[str]] = mapped_column(Text)
    uom: Mapped[Optional[str]] = mapped_column(String(50))
    qty: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 3))
    unit_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 4))
    line_total: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2))
    tax: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2))
    category: Mapped[Optional[str]] = mapped_column(String(100))
    created_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    invoice: Mapped["Invoice"] = relationship(back_populates="lines")

    __table_args__ = (
        Index("ix_invoice_lines_invoice_id", "invoice_id"),
        Index("ix_invoice_lines_sku", "sku"),
        Index("ix_invoice_lines_category", "category"),
    )


# Column groups selected by the repository for each report
INVOICE_SUMMARY_COLUMNS = (
    Invoice.id,
    Invoice.invoice_date,
    Invoice.invoice_number,
    Invoice.source,
    Invoice.location,
    Invoice.invoice_total,
    Invoice.pdf_url,
)

INVOICE_LISTING_COLUMNS = tuple(Invoice.__table__.columns)

LINE_COLUMNS = tuple(InvoiceLine.__table__.columns)
