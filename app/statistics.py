"""
Dashboard aggregates over the orders table.

Sales figures add up ``total_amount`` and leave cancelled orders out; the
status counts include every order.
"""
from datetime import datetime, time, timedelta

from sqlalchemy import desc, func
from sqlalchemy.orm import Session

from .models import Order, OrderItem, OrderStatus, Product

BEST_SELLERS_LIMIT = 4


def order_statistics(db: Session):
    counts = dict(
        db.query(Order.status, func.count(Order.id)).group_by(Order.status).all()
    )
    stats = {"total": sum(counts.values())}
    for status in OrderStatus:
        stats[status.value] = counts.get(status.value, 0)
    return stats


def _sales_between(db: Session, start=None, end=None):
    query = db.query(func.coalesce(func.sum(Order.total_amount), 0.0)).filter(
        Order.status != OrderStatus.CANCELLED.value
    )
    if start is not None:
        query = query.filter(Order.order_time >= start)
    if end is not None:
        query = query.filter(Order.order_time < end)
    return float(query.scalar())


def _month_start(day):
    return day.replace(day=1)


def sales_statistics(db: Session, now=None):
    """Sales for today, yesterday, this month, last month and all time."""
    now = now or datetime.now()
    today = datetime.combine(now.date(), time.min)
    tomorrow = today + timedelta(days=1)
    yesterday = today - timedelta(days=1)
    this_month = _month_start(today)
    next_month = _month_start(this_month + timedelta(days=32))
    last_month = _month_start(this_month - timedelta(days=1))

    return {
        "today": _sales_between(db, today, tomorrow),
        "yesterday": _sales_between(db, yesterday, today),
        "thisMonth": _sales_between(db, this_month, next_month),
        "lastMonth": _sales_between(db, last_month, this_month),
        "allTime": _sales_between(db),
    }


def weekly_sales(db: Session, now=None):
    """One entry per day for the last seven days, oldest first, with zero-filled gaps."""
    now = now or datetime.now()
    first_day = now.date() - timedelta(days=6)
    start = datetime.combine(first_day, time.min)
    end = datetime.combine(now.date() + timedelta(days=1), time.min)

    days = {}
    for offset in range(7):
        day = first_day + timedelta(days=offset)
        days[day] = {"date": day.isoformat(), "sales": 0.0, "orders": 0}

    rows = (
        db.query(Order.order_time, Order.total_amount)
        .filter(Order.status != OrderStatus.CANCELLED.value)
        .filter(Order.order_time >= start, Order.order_time < end)
        .all()
    )
    for order_time, total_amount in rows:
        entry = days[order_time.date()]
        entry["sales"] += total_amount
        entry["orders"] += 1
    return list(days.values())


def best_sellers(db: Session, limit=BEST_SELLERS_LIMIT):
    quantity = func.sum(OrderItem.quantity).label("quantity")
    rows = (
        db.query(Product.id, Product.name, quantity)
        .join(OrderItem, OrderItem.product_id == Product.id)
        .join(Order, Order.id == OrderItem.order_id)
        .filter(Order.status != OrderStatus.CANCELLED.value)
        .group_by(Product.id, Product.name)
        .order_by(desc("quantity"), Product.id)
        .limit(limit)
        .all()
    )
    return [
        {"productId": product_id, "name": name, "quantity": int(total)}
        for product_id, name, total in rows
    ]
