# Overview: Service-layer operations for products; catalog creation with barcode assignment.

from __future__ import annotations

import logging
import secrets

from ..errors import ConflictError, ValidationError
from ..extensions import db
from ..models import Product
from ..validation import coerce_cents, coerce_int
from .unit_of_work import unit_of_work

logger = logging.getLogger(__name__)

# Auto-assigned barcodes are 4-digit numbers 1000-9999
BARCODE_MIN = 1000
BARCODE_MAX = 9999
BARCODE_ATTEMPTS = 50


def barcode_exists(barcode: str) -> bool:
    return db.session.query(Product.id).filter_by(barcode=barcode).first() is not None


def generate_unique_barcode() -> str:
    """
    Random unused 4-digit numeric barcode.

    Raises ConflictError when no free code turns up after BARCODE_ATTEMPTS
    tries (the space holds only 9000 codes).
    """
    for _ in range(BARCODE_ATTEMPTS):
        candidate = str(BARCODE_MIN + secrets.randbelow(BARCODE_MAX - BARCODE_MIN + 1))
        if not barcode_exists(candidate):
            return candidate
    raise ConflictError("Could not allocate a unique barcode")


def create_product(
    *,
    name: str,
    barcode: str | None = None,
    category: str | None = None,
    cost_cents=0,
    price_cents=0,
    wholesale_price_cents=None,
    stock=0,
    min_stock=0,
) -> Product:
    """
    Add a catalog product. An empty barcode gets a generated one.

    Raises:
        ValidationError: Missing name or bad numbers
        ConflictError: Barcode already in use
    """
    name = (name or "").strip()
    if not name:
        raise ValidationError("name is required")

    barcode = (barcode or "").strip() or None

    with unit_of_work():
        if barcode is None:
            barcode = generate_unique_barcode()
        elif barcode_exists(barcode):
            raise ConflictError(f"Barcode {barcode} already exists")

        product = Product(
            name=name,
            barcode=barcode,
            category=(category or "").strip() or None,
            cost_cents=coerce_cents(cost_cents, "cost_cents"),
            price_cents=coerce_cents(price_cents, "price_cents"),
            wholesale_price_cents=coerce_cents(wholesale_price_cents, "wholesale_price_cents", allow_none=True),
            stock=coerce_int(stock, "stock"),
            min_stock=coerce_int(min_stock, "min_stock"),
        )
        db.session.add(product)

    logger.info("Created product %s (%s)", product.id, barcode)
    return product
