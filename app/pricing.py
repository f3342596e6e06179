"""
Line-item pricing and order totals.

Everything here is pure: products are resolved through the ``lookup_product``
callable handed in by the caller, so nothing touches the database directly.
"""
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from .errors import NotFoundError


@dataclass
class PricedItem:
    product_id: int
    quantity: int
    unit_price: float
    subtotal: float
    images: List[str] = field(default_factory=list)


@dataclass
class PricedItems:
    items: List[PricedItem]
    subtotal: float


def snapshot_images(requested, product) -> List[str]:
    """Pick the images stored on a line item.

    Request images win, then the product's ``images`` list, then its legacy
    single ``image``; an item with none of these gets an empty list.
    """
    if requested:
        return list(requested)
    if product.images:
        return list(product.images)
    if product.image:
        return [product.image]
    return []


def price_items(items, lookup_product: Callable[[int], Optional[object]]) -> PricedItems:
    """Resolve every requested item and compute per-item and aggregate subtotals.

    The whole list is checked before anything is returned, so an unknown
    product aborts the operation with no partial result. Duplicate products
    are priced as separate lines.
    """
    priced = []
    subtotal = 0
    for item in items:
        product = lookup_product(item.product_id)
        if product is None:
            raise NotFoundError("Product", item.product_id)

        item_subtotal = item.quantity * item.unit_price
        subtotal += item_subtotal
        priced.append(PricedItem(
            product_id=item.product_id,
            quantity=item.quantity,
            unit_price=item.unit_price,
            subtotal=item_subtotal,
            images=snapshot_images(item.images, product),
        ))
    return PricedItems(items=priced, subtotal=subtotal)


def order_total(subtotal, shipping_cost=None, discount_amount=None):
    # A discount larger than subtotal + shipping gives a negative total; it is kept as is.
    return subtotal + (shipping_cost or 0) - (discount_amount or 0)


def updated_total(order, changes, new_subtotal=None):
    """Total for an existing order after a partial update, or None if it does not change.

    ``changes`` holds only the fields the caller actually sent. Fields that
    were not sent keep the values already stored on ``order``; without new
    items the stored line-item subtotals are reused rather than re-priced.
    """
    touched = new_subtotal is not None or "shipping_cost" in changes or "discount_amount" in changes
    if not touched:
        return None

    subtotal = new_subtotal if new_subtotal is not None else order.items_subtotal
    shipping_cost = changes.get("shipping_cost", order.shipping_cost)
    discount_amount = changes.get("discount_amount", order.discount_amount)
    return order_total(subtotal, shipping_cost, discount_amount)
