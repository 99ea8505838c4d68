"""
Cas d'usage 'clients'.
- register_customer: réserve un domaine <prefix>.<suffix> libre, déduit culture/langue de facturation
  des règles du pays, persiste l'inscription sous un nouvel id (le client plateforme n'existe qu'après paiement).
- create_platform_customer: crée le client plateforme à partir de l'inscription persistée.
"""
import logging
from typing import Any, Dict, List
from uuid import uuid4

from storefront.customers.models import CustomerAccount, CustomerRegistration, CustomerRegistrationRequest
from storefront.errors import ErrorCode, StorefrontError

logger = logging.getLogger(__name__)


def _first(values: List[str], default: str = "") -> str:
    return values[0] if values else default


def register_customer(ctx, request: CustomerRegistrationRequest) -> CustomerRegistration:
    domain_name = f"{request.domain_prefix}.{ctx.settings.customer_domain_suffix}"
    if ctx.platform.domain_exists(domain_name):
        raise StorefrontError(ErrorCode.DOMAIN_NOT_AVAILABLE, "Domaine déjà utilisé", {"domain_prefix": domain_name})

    rules = ctx.platform.get_country_validation_rules(request.country) or {}
    registration = CustomerRegistration(
        **request.model_dump(),
        customer_id=str(uuid4()),
        user_name=str(request.email),
        domain_name=domain_name,
        billing_culture=_first(rules.get("supportedCulturesList") or [], "en-US"),
        billing_language=_first(rules.get("supportedLanguagesList") or [], "en"),
    )
    ctx.registrations.add(registration)
    logger.info("customers.register customer_id=%s domain=%s", registration.customer_id, domain_name)
    return registration


def platform_customer_payload(registration: CustomerRegistration) -> Dict[str, Any]:
    return {
        "companyProfile": {"domain": registration.domain_name},
        "billingProfile": {
            "culture": registration.billing_culture,
            "language": registration.billing_language,
            "email": registration.email,
            "companyName": registration.company_name,
            "defaultAddress": {
                "firstName": registration.first_name,
                "lastName": registration.last_name,
                "addressLine1": registration.address_line1,
                "addressLine2": registration.address_line2,
                "city": registration.city,
                "state": registration.state,
                "country": registration.country,
                "postalCode": registration.zip_code,
                "phoneNumber": registration.phone,
            },
        },
    }


def create_platform_customer(ctx, registration: CustomerRegistration) -> CustomerAccount:
    created = ctx.platform.create_customer(platform_customer_payload(registration)) or {}
    company = created.get("companyProfile") or {}
    credentials = created.get("userCredentials") or {}
    customer_id = company.get("tenantId") or created.get("id")
    if not customer_id:
        raise StorefrontError(ErrorCode.PLATFORM_FAILURE, "Client plateforme sans identifiant", {"domain": registration.domain_name})
    domain = company.get("domain") or registration.domain_name
    user_name = credentials.get("userName")
    return CustomerAccount(
        customer_id=customer_id,
        company_name=registration.company_name,
        email=str(registration.email),
        first_name=registration.first_name,
        last_name=registration.last_name,
        domain_name=domain,
        admin_user_account=f"{user_name}@{domain}" if user_name else None,
        password=credentials.get("password"),
    )
