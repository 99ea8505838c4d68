# module storefront.customers.models
import re
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator


class CustomerRegistrationRequest(BaseModel):
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    email: EmailStr
    company_name: str = Field(min_length=1)
    address_line1: str = Field(min_length=1)
    address_line2: str = ""
    city: str = Field(min_length=1)
    state: str = ""
    zip_code: str = Field(min_length=1)
    country: str = Field(min_length=2, max_length=2)
    phone: str = ""
    language: str = ""
    domain_prefix: str

    @field_validator("domain_prefix")
    @classmethod
    def _check_domain_prefix(cls, v: str) -> str:
        v = (v or "").strip().lower()
        if not re.fullmatch(r"[a-z0-9]{1,27}", v):
            raise ValueError("Le préfixe de domaine doit contenir 1 à 27 caractères alphanumériques")
        return v


class CustomerRegistration(CustomerRegistrationRequest):
    """Inscription persistée en attente du paiement (blob JSON opaque pour le store)."""
    customer_id: str
    user_name: str
    domain_name: str
    billing_culture: Optional[str] = None
    billing_language: Optional[str] = None


class CustomerAccount(BaseModel):
    """Compte créé sur la plateforme après paiement (renvoyé une seule fois au client)."""
    customer_id: str
    company_name: str
    email: str
    first_name: str
    last_name: str
    domain_name: str
    admin_user_account: Optional[str] = None
    password: Optional[str] = None
