import os
from typing import Any, Dict, Generator

import pytest
from fastapi.testclient import TestClient

# Désactive l'init fastapi-limiter (évite toute connexion Redis pendant les tests)
os.environ.setdefault("DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS", "1")

from storefront.app import app as fastapi_app  # noqa: E402
from storefront.payments.configuration import PaymentConfiguration  # noqa: E402
from storefront.utils.security import require_customer  # noqa: E402

from fakes import CUSTOMER_ID, make_context  # noqa: E402


# Marquage automatique selon le dossier
def pytest_collection_modifyitems(config, items):
    for item in items:
        nodeid = item.nodeid.replace("\\", "/")
        if "tests/unit/" in nodeid:
            item.add_marker(pytest.mark.unit)
        elif "tests/integration/" in nodeid:
            item.add_marker(pytest.mark.integration)
        elif "tests/functional/" in nodeid:
            item.add_marker(pytest.mark.functional)


@pytest.fixture(scope="session")
def app():
    return fastapi_app


@pytest.fixture
def ctx():
    """Contexte applicatif en mémoire (fakes), posé sur app.state.context par le fixture client."""
    return make_context(payment_configuration=PaymentConfiguration(provider="stripe", client_secret="sk_test_123"))


@pytest.fixture
def client(app, ctx) -> Generator[TestClient, None, None]:
    app.state.context = ctx
    try:
        with TestClient(app) as c:
            yield c
    finally:
        app.state.context = None


@pytest.fixture
def customer_user() -> Dict[str, Any]:
    return {
        "id": "user-1",
        "email": "client@example.com",
        "metadata": {"customer_id": CUSTOMER_ID},
        "customer_id": CUSTOMER_ID,
        "token": "fake-token",
    }


# Simuler un client authentifié pour les endpoints protégés
@pytest.fixture(autouse=True)
def _override_require_customer(app, customer_user):
    app.dependency_overrides[require_customer] = lambda: customer_user
    try:
        yield
    finally:
        app.dependency_overrides.pop(require_customer, None)
