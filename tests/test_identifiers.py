import re
from datetime import datetime

from app.identifiers import assign_invoice_identifiers, generate_invoice_no, generate_masked_order_id
from app.models import Order

INVOICE_RE = re.compile(r"^INV-\d{8}-\d{5}$")
MASKED_RE = re.compile(r"^ORD-\d{4}-\d{2}-\d{2}-[A-Z0-9]{6}$")

NOW = datetime(2026, 10, 19, 9, 30)


def _saved_order(db, invoice_no, masked_order_id):
    order = Order(total_amount=0, invoice_no=invoice_no, masked_order_id=masked_order_id)
    db.add(order)
    db.commit()
    return order


def test_generated_identifiers_match_formats():
    for _ in range(200):
        assert INVOICE_RE.match(generate_invoice_no())
        assert MASKED_RE.match(generate_masked_order_id())


def test_identifiers_use_generation_date(scripted_random):
    rng = scripted_random(numbers=[10000], suffixes=["A1B2C3"])

    assert generate_invoice_no(NOW, rng) == "INV-20261019-10000"
    assert generate_masked_order_id(NOW, rng) == "ORD-2026-10-19-A1B2C3"


def test_invoice_suffix_stays_in_five_digit_range():
    for _ in range(500):
        suffix = int(generate_invoice_no(NOW).rsplit("-", 1)[1])
        assert 10000 <= suffix <= 99999


def test_collisions_are_redrawn_independently(db, scripted_random):
    _saved_order(db, "INV-20261019-11111", "ORD-2026-10-19-AAAAAA")
    rng = scripted_random(
        numbers=[11111, 11111, 22222],
        suffixes=["AAAAAA", "BBBBBB"],
    )

    order = assign_invoice_identifiers(db, Order(), now=NOW, rng=rng)

    assert order.invoice_no == "INV-20261019-22222"
    assert order.masked_order_id == "ORD-2026-10-19-BBBBBB"


def test_existing_identifiers_are_kept(db, scripted_random):
    order = _saved_order(db, "INV-20261019-33333", "ORD-2026-10-19-CCCCCC")
    rng = scripted_random()  # any draw would fail loudly

    assign_invoice_identifiers(db, order, now=NOW, rng=rng)
    db.commit()

    assert order.invoice_no == "INV-20261019-33333"
    assert order.masked_order_id == "ORD-2026-10-19-CCCCCC"


def test_draws_are_bounded(db, scripted_random):
    _saved_order(db, "INV-20261019-44444", "ORD-2026-10-19-DDDDDD")
    rng = scripted_random(numbers=[44444] * 3, suffixes=["EEEEEE"])

    order = assign_invoice_identifiers(db, Order(), now=NOW, rng=rng, max_draws=3)

    # Out of draws: the last candidate is handed to the unique constraint.
    assert order.invoice_no == "INV-20261019-44444"
    assert order.masked_order_id == "ORD-2026-10-19-EEEEEE"
