from typing import Optional
from supabase import create_client, Client
from storefront.config import SUPABASE_URL, SUPABASE_ANON, SUPABASE_SERVICE_KEY

def create_anon_supabase() -> Optional[Client]:
    """
    Client Supabase 'anon' (auth utilisateur, résolution des jetons Bearer).
    Retourne None si l'URL ou la clé ne sont pas configurées (ex: tests, dev hors-ligne).
    """
    if not SUPABASE_URL or not SUPABASE_ANON:
        return None
    return create_client(SUPABASE_URL, SUPABASE_ANON)

def create_service_supabase() -> Client:
    """
    Client Supabase service-role (bypass RLS) pour les écritures côté serveur.
    Les stores (offres, abonnements, commandes en attente...) partagent cette instance via le contexte.
    """
    if not SUPABASE_URL or not SUPABASE_SERVICE_KEY:
        raise RuntimeError("SUPABASE_URL / SUPABASE_SERVICE_KEY manquants pour create_service_supabase()")
    return create_client(SUPABASE_URL, SUPABASE_SERVICE_KEY)
