"""
Passerelle régionale PayUMoney.
- PayUMoneyClient: appels REST (détail d'un paiement, statut, remboursement) via httpx.
  L'en-tête Authorization et la clé marchand viennent du store de configuration, relu à chaque appel.
- PayUMoneyGateway: même interface que les autres passerelles. Le formulaire hébergé est signé
  (sha512 de key|txnid|amount|productinfo|firstname|email|udf1..udf10|salt); le txnid est l'id de commande.
  PayUMoney encaisse immédiatement: capture ne fait que nettoyer, void rembourse.
"""
import hashlib
import logging
from decimal import Decimal
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import httpx

from storefront.commerce.pricing import round_currency
from storefront.errors import ErrorCode, StorefrontError
from storefront.orders.models import Order
from storefront.payments.gateway import PaymentGateway, require_value

logger = logging.getLogger(__name__)

PAYMENT_RESPONSE_PATH = "/payment/op/getPaymentResponse"
PAYMENT_STATUS_PATH = "/payment/payment/chkMerchantTxnStatus"
PAYMENT_REFUND_PATH = "/treasury/merchant/refundPayment"

SUCCESS_STATUSES = {"Money with Payumoney", "Completed", "Settlement in Process"}


class PayUMoneyClient:
    def __init__(self, base_url: str, payment_configuration, http: Optional[httpx.Client] = None):
        self.payment_configuration = payment_configuration
        self.http = http or httpx.Client(base_url=base_url)

    def _post(self, path: str, params: Dict[str, Any]) -> Dict[str, Any]:
        cfg = self.payment_configuration.retrieve()
        headers = {"Accept": "application/json", "Authorization": cfg.web_experience_profile_id}
        try:
            resp = self.http.post(path, params={"merchantKey": cfg.client_id, **params}, headers=headers)
        except httpx.HTTPError as exc:
            logger.exception("payments.payumoney.post %s failed", path)
            raise StorefrontError(ErrorCode.GATEWAY_FAILURE, "PayUMoney injoignable", {"provider": "payumoney"}) from exc
        if not resp.is_success:
            logger.error("payments.payumoney.post %s status=%s", path, resp.status_code)
            raise StorefrontError(
                ErrorCode.GATEWAY_FAILURE,
                "Réponse PayUMoney en erreur",
                {"provider": "payumoney", "status": resp.status_code},
            )
        return resp.json() or {}

    def get_payment_details(self, payment_id: str) -> Dict[str, Any]:
        return self._post(PAYMENT_RESPONSE_PATH, {"merchantTransactionIds": payment_id})

    def get_payment_status(self, payment_id: str) -> Dict[str, Any]:
        return self._post(PAYMENT_STATUS_PATH, {"merchantTransactionIds": payment_id})

    def refund_payment(self, payment_id: str, amount: str) -> Dict[str, Any]:
        return self._post(PAYMENT_REFUND_PATH, {"paymentId": payment_id, "refundAmount": amount})


def _first_result(response: Dict[str, Any]) -> Dict[str, Any]:
    result = response.get("result") or []
    if isinstance(result, list):
        return result[0] if result else {}
    return result


def payment_hash(key: str, txnid: str, amount: str, productinfo: str, firstname: str, email: str,
                 udf1: str, salt: str) -> str:
    parts = [key, txnid, amount, productinfo, firstname, email, udf1] + [""] * 9 + [salt]
    return hashlib.sha512("|".join(parts).encode("utf-8")).hexdigest()


class PayUMoneyGateway(PaymentGateway):
    def __init__(self, orders, client: PayUMoneyClient, payment_configuration, description: str, *,
                 checkout_url: str, decimals: int = 2):
        super().__init__(orders, description)
        self.client = client
        self.payment_configuration = payment_configuration
        self.checkout_url = checkout_url
        self.decimals = decimals
        self.payment_id: Optional[str] = None
        self.amount: Optional[Decimal] = None

    def _format_amount(self, amount: Decimal) -> str:
        return str(round_currency(amount, self.decimals))

    def generate_payment_uri(self, return_url: str, order: Order) -> str:
        saved = self._persist_pending_order(order)
        cfg = self.payment_configuration.retrieve()
        amount = self._format_amount(saved.total)
        productinfo = self.description
        params = {
            "key": cfg.client_id,
            "txnid": saved.order_id,
            "amount": amount,
            "productinfo": productinfo,
            "firstname": "",
            "email": "",
            "udf1": saved.customer_id,
            "surl": f"{return_url}&oid={saved.order_id}&payment=success&PayerID=payumoney&paymentId={saved.order_id}",
            "furl": f"{return_url}&oid={saved.order_id}&payment=failure",
            "service_provider": "payu_paisa",
        }
        params["hash"] = payment_hash(cfg.client_id, saved.order_id, amount, productinfo, "", "", saved.customer_id, cfg.client_secret)
        return f"{self.checkout_url}?{urlencode(params)}"

    def get_order_details_from_payment(self, payer_id: str, payment_id: str, order_id: str, customer_id: str) -> Order:
        require_value(payment_id, "payment_id")
        require_value(order_id, "order_id")
        require_value(customer_id, "customer_id")
        self._bind(order_id, customer_id)

        details = _first_result(self.client.get_payment_details(payment_id))
        post_back = details.get("postBackParam") or {}
        if post_back.get("status") != "success":
            raise StorefrontError(ErrorCode.GATEWAY_FAILURE, "Paiement PayUMoney non abouti", {"payment_id": payment_id, "status": post_back.get("status")})
        if post_back.get("txnid") != order_id:
            raise StorefrontError(ErrorCode.GATEWAY_FAILURE, "Paiement d'une autre commande", {"order_id": order_id})

        order = self.orders.retrieve(order_id, customer_id)
        self.payment_id = str(post_back.get("paymentId") or payment_id)
        self.amount = order.total
        return order.model_copy(update={"payment_reference": self.payment_id})

    def execute_payment(self) -> str:
        if not self.payment_id:
            raise StorefrontError(ErrorCode.GATEWAY_FAILURE, "Aucun paiement PayUMoney", {"order_id": self.order_id})
        status = _first_result(self.client.get_payment_status(self.order_id)).get("status")
        if status not in SUCCESS_STATUSES:
            raise StorefrontError(ErrorCode.GATEWAY_FAILURE, "Statut PayUMoney invalide", {"payment_id": self.payment_id, "status": status})
        return self.payment_id

    def capture(self, authorization_code: str) -> None:
        self._cleanup_after_capture()

    def void(self, authorization_code: str) -> None:
        self.client.refund_payment(authorization_code, self._format_amount(self.amount or Decimal("0")))
        self._delete_pending_order()
