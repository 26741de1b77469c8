"""
  FastAPI dependencies

  Services are looked up on app.state.container, so a test can swap the
  whole graph by passing its own Container to create_app().
"""
from fastapi import Depends, Request

from nicecommerce.api.container import Container
from nicecommerce.services.accounts import UserService
from nicecommerce.services.orders import OrderService
from nicecommerce.services.payments import PaymentService
from nicecommerce.services.products import CategoryService, ProductService


def get_container(request: Request) -> Container:
    return request.app.state.container


def get_user_service(container: Container = Depends(get_container)) -> UserService:
    return container.user_service


def get_product_service(container: Container = Depends(get_container)) -> ProductService:
    return container.product_service


def get_category_service(container: Container = Depends(get_container)) -> CategoryService:
    return container.category_service


def get_order_service(container: Container = Depends(get_container)) -> OrderService:
    return container.order_service


def get_payment_service(container: Container = Depends(get_container)) -> PaymentService:
    return container.payment_service
