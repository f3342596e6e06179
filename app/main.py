import logging
import os
from datetime import date
from typing import Optional

import uvicorn
from fastapi import Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from . import orders as order_service
from . import statistics
from .database import Base, engine, get_db
from .errors import OrderServiceError
from .schemas import BillingCreate, BillingFields, OrderCreate, OrderUpdate, ProductCreate, StatusChange
from .serializers import billing_dict, order_detail, order_summary, product_dict

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Create database tables on startup if they don't exist.
Base.metadata.create_all(bind=engine)

app = FastAPI(title="Order Service")


# --- Error Handling ---
@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Report schema failures as 400 with one message per offending field."""
    errors = {}
    for error in exc.errors():
        path = [str(part) for part in error["loc"] if part not in ("body", "query", "path")]
        errors[".".join(path)] = error["msg"]
    return JSONResponse(
        status_code=400,
        content={"success": False, "message": "Validation failed", "errors": errors},
    )


@app.exception_handler(OrderServiceError)
async def order_service_error_handler(request: Request, exc: OrderServiceError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        message = "Internal server error"
    else:
        message = exc.message
    return JSONResponse(status_code=exc.status_code, content={"success": False, "message": message})


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception("%s %s failed", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"success": False, "message": "Internal server error"})


# --- Health ---
@app.get("/")
def root():
    """Health check endpoint."""
    return {"message": "Order service is running"}


@app.get("/health")
def health():
    return {"status": "ok"}


# --- Products ---
@app.post("/api/products", status_code=201)
def add_product(req: ProductCreate, db: Session = Depends(get_db)):
    """Registers a product that orders can reference."""
    product = order_service.create_product(db, req)
    return {"success": True, "message": "Product created successfully", "product": product_dict(product)}


@app.get("/api/products/{product_id}")
def get_product(product_id: int, db: Session = Depends(get_db)):
    product = order_service.get_product(db, product_id)
    return {"success": True, "product": product_dict(product)}


# --- Billing ---
# Creates a billing record, plus its order when order items are included.
@app.post("/api/billing", status_code=201)
def add_billing(req: BillingCreate, db: Session = Depends(get_db)):
    billing, order = order_service.create_billing(db, req)
    response = {
        "success": True,
        "message": "Billing added successfully",
        "billing": billing_dict(billing),
    }
    if order is not None:
        response["message"] = "Billing and order created successfully"
        response["order"] = order_detail(order)
    return response


@app.get("/api/billing")
def list_billing(db: Session = Depends(get_db)):
    billing = order_service.list_billing(db)
    return {"success": True, "message": "Billing fetched successfully", "billing": [billing_dict(b) for b in billing]}


@app.get("/api/billing/{billing_id}")
def get_billing(billing_id: int, db: Session = Depends(get_db)):
    billing = order_service.get_billing(db, billing_id)
    return {"success": True, "message": "Billing fetched successfully", "billing": billing_dict(billing)}


@app.put("/api/billing/{billing_id}")
def update_billing(billing_id: int, req: BillingFields, db: Session = Depends(get_db)):
    billing = order_service.update_billing(db, billing_id, req)
    return {"success": True, "message": "Billing updated successfully", "billing": billing_dict(billing)}


@app.delete("/api/billing/{billing_id}")
def delete_billing(billing_id: int, db: Session = Depends(get_db)):
    order_service.delete_billing(db, billing_id)
    return {"success": True, "message": "Billing deleted successfully"}


# --- Orders ---
# Creates a new order: prices the items, stamps invoice identifiers and saves it.
@app.post("/api/orders", status_code=201)
def create_order(req: OrderCreate, db: Session = Depends(get_db)):
    order = order_service.create_order(db, req)
    return {"success": True, "message": "Order created successfully", "order": order_detail(order)}


# Retrieves a filtered, paginated list of orders.
@app.get("/api/orders")
def list_orders(
    page: int = 1,
    limit: int = 10,
    search: Optional[str] = None,
    status: Optional[str] = None,
    method: Optional[str] = None,
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    db: Session = Depends(get_db),
):
    orders, pagination = order_service.list_orders(
        db, page=page, limit=limit, search=search, status=status, method=method,
        start_date=start_date, end_date=end_date,
    )
    return {"success": True, "data": [order_summary(o) for o in orders], "pagination": pagination}


@app.get("/api/orders/statistics")
def get_order_statistics(db: Session = Depends(get_db)):
    """Order counts in total and per status."""
    return {"success": True, "data": statistics.order_statistics(db)}


@app.get("/api/orders/sales-statistics")
def get_sales_statistics(db: Session = Depends(get_db)):
    return {"success": True, "data": statistics.sales_statistics(db)}


@app.get("/api/orders/weekly-sales")
def get_weekly_sales(db: Session = Depends(get_db)):
    return {"success": True, "data": statistics.weekly_sales(db)}


@app.get("/api/orders/best-sellers")
def get_best_sellers(limit: int = statistics.BEST_SELLERS_LIMIT, db: Session = Depends(get_db)):
    return {"success": True, "data": statistics.best_sellers(db, limit=max(1, limit))}


@app.get("/api/orders/billing/{billing_id}")
def get_orders_by_billing(billing_id: int, db: Session = Depends(get_db)):
    orders = order_service.orders_for_billing(db, billing_id)
    return {"success": True, "message": "Orders fetched successfully", "orders": [order_detail(o) for o in orders]}


# Retrieves a single order by its ID.
@app.get("/api/orders/{order_id}")
def get_order(order_id: int, db: Session = Depends(get_db)):
    order = order_service.get_order(db, order_id)
    return {"success": True, "order": order_detail(order)}


# Applies a partial update; the total is recomputed from whatever changed.
@app.put("/api/orders/{order_id}")
def update_order(order_id: int, req: OrderUpdate, db: Session = Depends(get_db)):
    order = order_service.update_order(db, order_id, req)
    return {"success": True, "message": "Order updated successfully", "order": order_detail(order)}


@app.patch("/api/orders/{order_id}/status")
def change_order_status(order_id: int, req: StatusChange, db: Session = Depends(get_db)):
    order = order_service.change_order_status(db, order_id, req.status)
    return {"success": True, "message": "Order status updated successfully", "order": order_detail(order)}


@app.delete("/api/orders/{order_id}")
def delete_order(order_id: int, db: Session = Depends(get_db)):
    order_service.delete_order(db, order_id)
    return {"success": True, "message": "Order deleted successfully"}


# --- Tracking ---
# Looks an order up by invoice number, or all orders of a billing email.
@app.get("/api/track")
def track_order(invoice_no: Optional[str] = None, email: Optional[str] = None, db: Session = Depends(get_db)):
    if invoice_no:
        order = order_service.track_by_invoice(db, invoice_no)
        return {"success": True, "message": "Order tracked successfully", "order": order_detail(order)}
    if email:
        orders = order_service.track_by_email(db, email)
        return {
            "success": True,
            "message": "Orders tracked successfully",
            "orders": [order_detail(o) for o in orders],
            "total_orders": len(orders),
        }
    return JSONResponse(
        status_code=400,
        content={"success": False, "message": "Either Invoice Number or Billing Email is required"},
    )


if __name__ == "__main__":
    # Run the service with uvicorn when executed directly: python -m app.main
    uvicorn.run(app, host=os.getenv("HOST", "0.0.0.0"), port=int(os.getenv("PORT", "8000")))
