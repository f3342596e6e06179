"""
Order and billing use cases.

Each function takes the request's session, does its reads and writes and
commits. Anything that fails rolls the session back before the error leaves,
so a request never leaves half an order (or an orphaned billing) behind.
"""
import logging
import math
import os
from datetime import datetime, time

import pika
from pydantic import EmailStr, TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .errors import IdentifierConflictError, InvalidTransitionError, NotFoundError, ValidationError
from .identifiers import assign_invoice_identifiers
from .messaging.producer import producer
from .models import STATUS_TRANSITIONS, Billing, Order, OrderItem, OrderStatus, Product
from .pricing import order_total, price_items, updated_total

logger = logging.getLogger(__name__)

ORDER_SAVE_ATTEMPTS = int(os.getenv("ORDER_SAVE_ATTEMPTS", "10"))
STRICT_STATUS_TRANSITIONS = os.getenv("STRICT_STATUS_TRANSITIONS", "0").strip().lower() in {"1", "true", "yes"}

_email_adapter = TypeAdapter(EmailStr)


# --- Helpers ---
def _product_lookup(db: Session):
    return lambda product_id: db.get(Product, product_id)


def _line_items(priced):
    return [
        OrderItem(
            position=position,
            product_id=item.product_id,
            quantity=item.quantity,
            unit_price=item.unit_price,
            subtotal=item.subtotal,
            images=item.images,
        )
        for position, item in enumerate(priced.items)
    ]


def _escape_like(text):
    """Make LIKE wildcards in user input match literally."""
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _is_identifier_conflict(exc: IntegrityError):
    message = str(exc.orig)
    return "invoice_no" in message or "masked_order_id" in message


def _save_new_order(db: Session, build):
    """Insert the order produced by ``build()``, retrying on identifier collisions.

    ``build`` adds a fresh, identifier-stamped order (and whatever goes with
    it) to the session. When the insert hits the invoice_no or masked_order_id
    unique constraint, the transaction is rolled back and the whole unit is
    built and saved again.
    """
    for attempt in range(1, ORDER_SAVE_ATTEMPTS + 1):
        try:
            order = build()
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            if not _is_identifier_conflict(exc):
                raise
            logger.warning("Order identifier collided on insert (attempt %d/%d)", attempt, ORDER_SAVE_ATTEMPTS)
            continue
        except Exception:
            db.rollback()
            raise
        db.refresh(order)
        return order
    raise IdentifierConflictError("Could not assign a unique invoice number to the order")


def _order_event(order):
    return {
        "order_id": order.id,
        "invoice_no": order.invoice_no,
        "masked_order_id": order.masked_order_id,
        "status": order.status,
        "total_amount": order.total_amount,
    }


def _emit(routing_key, event):
    try:
        producer.publish_event(event, routing_key=routing_key)
    except pika.exceptions.AMQPError as exc:
        # The order is already committed; a lost notification must not fail the request.
        logger.warning("Failed to publish '%s' for order %s: %s", routing_key, event["order_id"], exc)


def check_transition(current, requested):
    """Raise if ``current -> requested`` is not allowed. Only enforced in strict mode."""
    if not STRICT_STATUS_TRANSITIONS or current == requested:
        return
    if OrderStatus(requested) not in STATUS_TRANSITIONS[OrderStatus(current)]:
        raise InvalidTransitionError(current, requested)


# --- Orders ---
def create_order(db: Session, req):
    if not req.order_items:
        raise ValidationError("Order must have at least one item")

    if db.get(Billing, req.billing_id) is None:
        raise NotFoundError("Billing", req.billing_id)

    priced = price_items(req.order_items, _product_lookup(db))
    total_amount = order_total(priced.subtotal, req.shipping_cost, req.discount_amount)

    def build():
        order = Order(
            billing_id=req.billing_id,
            items=_line_items(priced),
            total_amount=total_amount,
            shipping_cost=req.shipping_cost,
            discount_amount=req.discount_amount,
            payment_method=req.payment_method.value,
            status=req.status.value,
            notes=req.notes,
            order_time=datetime.now(),
        )
        assign_invoice_identifiers(db, order)
        db.add(order)
        return order

    order = _save_new_order(db, build)
    logger.info("Created order %s (%s), total %.2f", order.id, order.invoice_no, order.total_amount)
    _emit("order.created", _order_event(order))
    return order


def get_order(db: Session, order_id):
    order = db.get(Order, order_id)
    if order is None:
        raise NotFoundError("Order", order_id)
    return order


def update_order(db: Session, order_id, req):
    order = get_order(db, order_id)
    changes = req.model_dump(exclude_unset=True, exclude_none=True, mode="json")

    try:
        new_subtotal = None
        if "order_items" in changes:
            priced = price_items(req.order_items, _product_lookup(db))
            order.items = _line_items(priced)
            new_subtotal = priced.subtotal

        # Work out the total before the stored shipping and discount are overwritten.
        total_amount = updated_total(order, changes, new_subtotal)
        if total_amount is not None:
            order.total_amount = total_amount

        if "status" in changes:
            check_transition(order.status, changes["status"])
            order.status = changes["status"]
        for field in ("shipping_cost", "discount_amount", "payment_method", "notes"):
            if field in changes:
                setattr(order, field, changes[field])

        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(order)
    logger.info("Updated order %s: %s", order.id, sorted(changes))
    _emit("order.updated", _order_event(order))
    return order


def change_order_status(db: Session, order_id, status):
    order = get_order(db, order_id)
    requested = OrderStatus(status).value
    previous = order.status
    check_transition(previous, requested)

    order.status = requested
    db.commit()
    db.refresh(order)
    logger.info("Order %s status %s -> %s", order.id, previous, requested)
    _emit("order.status_changed", _order_event(order))
    return order


def delete_order(db: Session, order_id):
    order = get_order(db, order_id)
    event = _order_event(order)
    db.delete(order)
    db.commit()
    logger.info("Deleted order %s (%s)", order_id, event["invoice_no"])
    _emit("order.deleted", event)


def list_orders(db: Session, page=1, limit=10, search=None, status=None, method=None,
                start_date=None, end_date=None):
    """Filtered, newest-first page of orders plus pagination metadata."""
    query = db.query(Order)

    if status and status.strip():
        query = query.filter(Order.status == status.strip())
    if method and method.strip():
        query = query.filter(Order.payment_method == method.strip())
    if start_date:
        query = query.filter(Order.order_time >= datetime.combine(start_date, time.min))
    if end_date:
        # Include the entire end date.
        query = query.filter(Order.order_time <= datetime.combine(end_date, time.max))
    if search and search.strip():
        term = f"%{_escape_like(search.strip())}%"
        billing_ids = select(Billing.id).where(or_(
            Billing.first_name.ilike(term, escape="\\"),
            Billing.last_name.ilike(term, escape="\\"),
            Billing.email.ilike(term, escape="\\"),
        ))
        query = query.filter(or_(
            Order.invoice_no.ilike(term, escape="\\"),
            Order.billing_id.in_(billing_ids),
        ))

    page = max(1, page or 1)
    limit = max(1, limit or 10)
    total_items = query.count()
    orders = (
        query.order_by(Order.order_time.desc(), Order.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    total_pages = math.ceil(total_items / limit)

    pagination = {
        "limit": limit,
        "current": page,
        "items": total_items,
        "pages": total_pages,
        "next": page + 1 if page < total_pages else None,
        "prev": page - 1 if page > 1 else None,
    }
    return orders, pagination


def orders_for_billing(db: Session, billing_id):
    get_billing(db, billing_id)
    return (
        db.query(Order)
        .filter(Order.billing_id == billing_id)
        .order_by(Order.order_time.desc(), Order.id.desc())
        .all()
    )


def track_by_invoice(db: Session, invoice_no):
    order = db.query(Order).filter(Order.invoice_no == invoice_no.strip()).first()
    if order is None:
        raise NotFoundError("Order with this invoice number")
    return order


def track_by_email(db: Session, email):
    try:
        email = _email_adapter.validate_python(email.strip()).lower()
    except PydanticValidationError:
        raise ValidationError("Invalid email format") from None

    billing_ids = select(Billing.id).where(Billing.email == email)
    orders = (
        db.query(Order)
        .filter(Order.billing_id.in_(billing_ids))
        .order_by(Order.order_time.desc(), Order.id.desc())
        .all()
    )
    if not orders:
        raise NotFoundError("Orders for this email address")
    return orders


# --- Billing ---
_BILLING_FIELDS = (
    "first_name", "last_name", "company", "phone", "email", "country", "address",
    "city", "postcode", "ship_to_different_address", "order_notes",
)


def _billing_values(req):
    return {field: getattr(req, field) for field in _BILLING_FIELDS}


def create_billing(db: Session, req):
    """Create a billing record and, when items are given, its order in the same transaction.

    Returns ``(billing, order)``; ``order`` is None when no items were sent.
    """
    if not req.order_items:
        billing = Billing(**_billing_values(req))
        db.add(billing)
        db.commit()
        db.refresh(billing)
        logger.info("Created billing %s", billing.id)
        return billing, None

    # Price before anything is written so an unknown product leaves no billing behind.
    priced = price_items(req.order_items, _product_lookup(db))
    total_amount = order_total(priced.subtotal, req.shipping_cost, req.discount_amount)

    def build():
        billing = Billing(**_billing_values(req))
        order = Order(
            billing=billing,
            items=_line_items(priced),
            total_amount=total_amount,
            shipping_cost=req.shipping_cost,
            discount_amount=req.discount_amount,
            payment_method=req.payment_method.value,
            status=OrderStatus.PENDING.value,
            notes=req.order_notes or "",
            order_time=datetime.now(),
        )
        assign_invoice_identifiers(db, order)
        db.add(order)
        return order

    order = _save_new_order(db, build)
    logger.info("Created billing %s with order %s (%s)", order.billing_id, order.id, order.invoice_no)
    _emit("order.created", _order_event(order))
    return order.billing, order


def get_billing(db: Session, billing_id):
    billing = db.get(Billing, billing_id)
    if billing is None:
        raise NotFoundError("Billing", billing_id)
    return billing


def list_billing(db: Session):
    return db.query(Billing).order_by(Billing.id).all()


def update_billing(db: Session, billing_id, req):
    billing = get_billing(db, billing_id)
    for field, value in _billing_values(req).items():
        setattr(billing, field, value)
    db.commit()
    db.refresh(billing)
    return billing


def delete_billing(db: Session, billing_id):
    billing = get_billing(db, billing_id)
    db.delete(billing)
    db.commit()
    logger.info("Deleted billing %s", billing_id)


# --- Products ---
def create_product(db: Session, req):
    product = Product(
        name=req.name,
        sku=req.sku,
        sales_price=req.sales_price,
        images=req.images,
        image=req.image,
        description=req.description,
    )
    db.add(product)
    db.commit()
    db.refresh(product)
    return product


def get_product(db: Session, product_id):
    product = db.get(Product, product_id)
    if product is None:
        raise NotFoundError("Product", product_id)
    return product
