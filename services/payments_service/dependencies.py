"""FastAPI dependencies for the clients built once in ``create_app``."""

from fastapi import Request
from libs.common.emails.client import EmailClient
from services.payments_service.catalog_client import CatalogClient
from services.payments_service.razorpay_client import RazorpayClient


def get_razorpay_client(request: Request) -> RazorpayClient:
    return request.app.state.razorpay_client


def get_catalog_client(request: Request) -> CatalogClient:
    return request.app.state.catalog_client


def get_email_client(request: Request) -> EmailClient:
    return request.app.state.email_client
