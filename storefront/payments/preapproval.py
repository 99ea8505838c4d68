"""Passerelle des clients pré-approuvés: aucun encaissement réel, la commande en attente sert de trace."""
from storefront.orders.models import Order
from storefront.payments.gateway import PaymentGateway, require_value

PREAPPROVED_AUTHORIZATION_CODE = "Pre-approvedTransaction"


class PreApprovalGateway(PaymentGateway):
    def generate_payment_uri(self, return_url: str, order: Order) -> str:
        saved = self._persist_pending_order(order)
        return f"{return_url}&oid={saved.order_id}&payment=success&PayerID=PayId&paymentId=PreApproved"

    def get_order_details_from_payment(self, payer_id: str, payment_id: str, order_id: str, customer_id: str) -> Order:
        # payer_id / payment_id ignorés
        require_value(order_id, "order_id")
        require_value(customer_id, "customer_id")
        self._bind(order_id, customer_id)
        return self.orders.retrieve(order_id, customer_id)

    def execute_payment(self) -> str:
        return PREAPPROVED_AUTHORIZATION_CODE

    def capture(self, authorization_code: str) -> None:
        self._cleanup_after_capture()

    def void(self, authorization_code: str) -> None:
        self._delete_pending_order()
