from nicecommerce.api.routes import admin, auth, categories, health, orders, payments, products

ROUTERS = [
    health.router,
    auth.router,
    admin.router,
    products.router,
    categories.router,
    orders.router,
    payments.router,
]

__all__ = ["ROUTERS"]
