"""
Registre central des routers.
- API v1: offers, customers, orders, subscriptions
- Health: health_router
"""
from fastapi import FastAPI

from storefront.customers import views as customers_views
from storefront.health.router import router as health_router
from storefront.offers import views as offers_views
from storefront.orders import views as orders_views
from storefront.subscriptions import views as subscriptions_views


def register_routers(app: FastAPI) -> None:
    # API v1
    app.include_router(offers_views.router)
    app.include_router(customers_views.router)
    app.include_router(orders_views.router)
    app.include_router(subscriptions_views.router)
    # Health & monitoring
    app.include_router(health_router)
