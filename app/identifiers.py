"""
Invoice numbers and masked order IDs.

Both are a date prefix plus a random suffix. A candidate is checked against
the orders table and redrawn on collision, but only a bounded number of
times: the unique constraints on the table decide in the end, and the order
use cases retry the whole save when an insert trips one of them.
"""
import logging
import os
import random
import string
from datetime import datetime

from sqlalchemy.orm import Session

from .models import Order

logger = logging.getLogger(__name__)

IDENTIFIER_MAX_DRAWS = int(os.getenv("IDENTIFIER_MAX_DRAWS", "10"))

MASKED_ID_ALPHABET = string.ascii_uppercase + string.digits
MASKED_ID_LENGTH = 6

_rng = random.Random()


def generate_invoice_no(now=None, rng=None):
    """INV-YYYYMMDD-NNNNN with a five-digit suffix in 10000-99999."""
    now = now or datetime.now()
    rng = rng or _rng
    return f"INV-{now:%Y%m%d}-{rng.randint(10000, 99999)}"


def generate_masked_order_id(now=None, rng=None):
    """ORD-YYYY-MM-DD-XXXXXX with six uppercase letters or digits."""
    now = now or datetime.now()
    rng = rng or _rng
    suffix = "".join(rng.choice(MASKED_ID_ALPHABET) for _ in range(MASKED_ID_LENGTH))
    return f"ORD-{now:%Y-%m-%d}-{suffix}"


def _draw_unique(db: Session, column, generate, max_draws):
    candidate = None
    for _ in range(max_draws):
        candidate = generate()
        if db.query(Order.id).filter(column == candidate).first() is None:
            return candidate
        logger.info("Identifier %s already taken, drawing again", candidate)
    # Out of draws: hand over the last candidate and let the unique constraint decide.
    return candidate


def assign_invoice_identifiers(db: Session, order: Order, now=None, rng=None, max_draws=None):
    """Give ``order`` an invoice number and a masked order ID unless it already has them.

    Call this before the order's first insert. Identifiers that are already
    set are left alone, so re-running it on a saved order changes nothing.
    """
    now = now or datetime.now()
    max_draws = max_draws or IDENTIFIER_MAX_DRAWS

    if not order.invoice_no:
        order.invoice_no = _draw_unique(
            db, Order.invoice_no, lambda: generate_invoice_no(now, rng), max_draws,
        )
    if not order.masked_order_id:
        order.masked_order_id = _draw_unique(
            db, Order.masked_order_id, lambda: generate_masked_order_id(now, rng), max_draws,
        )
    return order
