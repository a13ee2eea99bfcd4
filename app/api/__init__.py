# app/api/__init__.py
from fastapi import FastAPI

from app.api.routers import carts, health, notifications, orders, payments, products, users


def create_app() -> FastAPI:
    app = FastAPI(title="Shop Order Engine", version="1.0.0")

    app.include_router(health.router)
    app.include_router(users.router)
    app.include_router(carts.router)
    app.include_router(orders.router)
    app.include_router(payments.router)
    app.include_router(notifications.router)
    app.include_router(products.router)

    return app
