from .gateway import PaymentGateway
from .factory import create_payment_gateway, create_redirect_gateway, select_gateway_kind

__all__ = [
    "PaymentGateway",
    "create_payment_gateway",
    "create_redirect_gateway",
    "select_gateway_kind",
]
