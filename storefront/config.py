# storefront.config
from pathlib import Path
import os
from dotenv import load_dotenv

# Calculer le chemin du projet puis charger .env de manière explicite
BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"
load_dotenv(dotenv_path=ENV_PATH, override=False)

"""
Configuration centrale de la vitrine.

- Charge le fichier .env à la racine du projet (BASE_DIR/.env)
- Normalise et expose les secrets/URLs (Supabase, Stripe, PayUMoney, plateforme partenaire)
- Expose les paramètres commerce (durée d'un terme, fenêtre de renouvellement, décimales monétaires)
Ces constantes ne sont lues qu'une fois, par build_context() (storefront.context).
"""

def _clean_env(v: str) -> str:
    """
    Nettoie une valeur d'environnement:
    - supprime les espaces et guillemets (simples, doubles) et backticks
    - retourne toujours une chaîne (jamais None)
    """
    return (v or "").strip().strip("'").strip('"').strip("`")

def _int_env(name: str, default: int) -> int:
    raw = _clean_env(os.getenv(name) or "")
    try:
        return int(raw) if raw else default
    except ValueError:
        return default

# Supabase: URL et clés (anon pour l'auth utilisateur, service pour les écritures serveur)
SUPABASE_URL = _clean_env(os.getenv("SUPABASE_URL") or "")
SUPABASE_ANON = _clean_env(os.getenv("SUPABASE_ANON_KEY") or "")
SUPABASE_SERVICE_KEY = _clean_env(os.getenv("SUPABASE_SERVICE_KEY") or "")

# Normalisations utiles
if SUPABASE_URL and not SUPABASE_URL.startswith("http"):
    SUPABASE_URL = "https://" + SUPABASE_URL
if SUPABASE_URL.endswith("/"):
    SUPABASE_URL = SUPABASE_URL.rstrip("/")

# Cookies/ Sécurité
COOKIE_SECURE = (os.getenv("COOKIE_SECURE", "false").lower() == "true")

# CORS / hôtes
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
ALLOWED_HOSTS = [h.strip() for h in os.getenv("ALLOWED_HOSTS", "localhost,127.0.0.1,testserver").split(",") if h.strip()]

# Plateforme commerce du partenaire (API REST)
PLATFORM_API_URL = _clean_env(os.getenv("PLATFORM_API_URL") or "https://api.partnercenter.example.com/v1").rstrip("/")
PLATFORM_API_TOKEN = _clean_env(os.getenv("PLATFORM_API_TOKEN") or "")
PLATFORM_OFFER_LOCALE = _clean_env(os.getenv("PLATFORM_OFFER_LOCALE") or "en-US")
PLATFORM_COUNTRY = _clean_env(os.getenv("PLATFORM_COUNTRY") or "US")
CUSTOMER_DOMAIN_SUFFIX = _clean_env(os.getenv("CUSTOMER_DOMAIN_SUFFIX") or "onmicrosoft.com")

# Stripe (passerelle à redirection). La clé secrète de référence est celle du
# store de configuration des paiements; celle-ci ne sert que de valeur par défaut.
STRIPE_SECRET_KEY = _clean_env(os.getenv("STRIPE_SECRET_KEY") or "")

# PayUMoney (passerelle régionale)
PAYUMONEY_BASE_URL = _clean_env(os.getenv("PAYUMONEY_BASE_URL") or "https://www.payumoney.com").rstrip("/")
PAYUMONEY_CHECKOUT_URL = _clean_env(os.getenv("PAYUMONEY_CHECKOUT_URL") or "https://secure.payu.in/_payment")

# Cache des offres plateforme (Redis, optionnel)
OFFERS_CACHE_REDIS_URL = _clean_env(os.getenv("OFFERS_CACHE_REDIS_URL") or "")
OFFERS_CACHE_TTL_SECONDS = _int_env("OFFERS_CACHE_TTL_SECONDS", 3600)

# Paramètres commerce
SUBSCRIPTION_TERM_DAYS = _int_env("SUBSCRIPTION_TERM_DAYS", 365)
RENEWAL_WINDOW_DAYS = _int_env("RENEWAL_WINDOW_DAYS", 30)
RENEWAL_GRACE_DAYS = _int_env("RENEWAL_GRACE_DAYS", 30)
CURRENCY_CODE = _clean_env(os.getenv("CURRENCY_CODE") or "usd").lower()
CURRENCY_DECIMALS = _int_env("CURRENCY_DECIMALS", 2)
