"""Turn ORM rows into the JSON shapes the admin dashboard reads."""


def _iso(value):
    return value.isoformat() if value else None


def product_dict(product):
    return {
        "id": product.id,
        "name": product.name,
        "sku": product.sku,
        "salesPrice": product.sales_price,
        "images": product.images or [],
        "image": product.image,
        "description": product.description or "",
        "status": product.status,
    }


def billing_dict(billing):
    return {
        "id": billing.id,
        "firstName": billing.first_name,
        "lastName": billing.last_name,
        "company": billing.company,
        "phone": billing.phone,
        "email": billing.email,
        "country": billing.country,
        "address": billing.address,
        "city": billing.city,
        "postcode": billing.postcode,
        "shipToDifferentAddress": billing.ship_to_different_address,
        "orderNotes": billing.order_notes,
        "created_at": _iso(billing.created_at),
        "updated_at": _iso(billing.updated_at),
    }


def customer_dict(billing):
    if billing is None:
        return None
    return {
        "name": f"{billing.first_name or ''} {billing.last_name or ''}".strip(),
        "firstName": billing.first_name or "",
        "lastName": billing.last_name or "",
        "email": billing.email or "",
        "phone": billing.phone or "",
        "address": billing.address or "",
        "city": billing.city or "",
        "country": billing.country or "",
        "company": billing.company or "",
    }


def order_item_dict(item):
    product = item.product
    product_images = (product.images or []) if product else []
    return {
        "id": item.id,
        "product_id": item.product_id,
        "quantity": item.quantity,
        "unit_price": item.unit_price,
        "subtotal": item.subtotal,
        "images": item.images or [],
        "products": {
            "name": product.name if product else "Unknown Product",
            "sku": product.sku if product else "",
            "salesPrice": product.sales_price if product else 0,
            # Fall back to the product's current images when no snapshot was stored.
            "images": item.images or product_images,
        },
    }


def order_summary(order):
    """Row shape for order lists."""
    return {
        "id": order.id,
        "invoice_no": order.invoice_no,
        "masked_order_id": order.masked_order_id,
        "order_time": _iso(order.order_time or order.created_at),
        "total_amount": order.total_amount,
        "shipping_cost": order.shipping_cost,
        "discount_amount": order.discount_amount,
        "payment_method": order.payment_method,
        "status": order.status,
        "created_at": _iso(order.created_at),
        "updated_at": _iso(order.updated_at),
        "customers": customer_dict(order.billing),
    }


def order_detail(order):
    """Full order with billing, line items and the applied discount."""
    data = order_summary(order)
    data.update({
        "billing_id": order.billing_id,
        "notes": order.notes or "",
        "order_items": [order_item_dict(item) for item in order.items],
        "coupons": {
            "discount_type": "fixed",
            "discount_value": order.discount_amount,
        } if order.discount_amount > 0 else None,
    })
    return data
