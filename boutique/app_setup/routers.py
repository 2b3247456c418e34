"""
Registre central des routers.
- API v1: cart, fx, checkout, eligibility, holds, payments, account
- Proxy Checkout.com (routes historiques sans préfixe)
- Health: health_router
"""
from fastapi import FastAPI
from boutique.account.views import router as account_router
from boutique.cart.views import router as cart_router
from boutique.checkout.views import router as checkout_router
from boutique.eligibility.views import router as eligibility_router
from boutique.fx.views import router as fx_router
from boutique.health.router import router as health_router
from boutique.holds.views import router as holds_router
from boutique.payments import views as payments_views


def register_routers(app: FastAPI) -> None:
    # API v1
    app.include_router(cart_router)
    app.include_router(fx_router)
    app.include_router(checkout_router)
    app.include_router(eligibility_router)
    app.include_router(holds_router)
    app.include_router(payments_views.router)
    app.include_router(account_router)
    # Proxy Checkout.com
    app.include_router(payments_views.proxy_router)
    # Health & monitoring
    app.include_router(health_router)
