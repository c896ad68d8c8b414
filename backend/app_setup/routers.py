"""
Registre central des routers.
- API: payments (checkout, résolution de PaymentIntent, remboursement), orders, notifications
- Health: health_router
"""
from fastapi import FastAPI
from backend.payments import views as payments_views
from backend.orders import views as orders_views
from backend.notifications import views as notifications_views
from backend.health.router import router as health_router

def register_routers(app: FastAPI) -> None:
    app.include_router(payments_views.router)
    app.include_router(orders_views.router)
    app.include_router(notifications_views.router)
    # Health & monitoring
    app.include_router(health_router)
