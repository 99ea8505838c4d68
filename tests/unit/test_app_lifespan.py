import pytest
from fastapi import FastAPI
from fastapi_limiter import FastAPILimiter

from storefront.app_setup import lifespan as lifespan_mod

from fakes import make_context


@pytest.mark.asyncio
async def test_rate_limiter_uses_fake_redis(monkeypatch):
    monkeypatch.delenv("DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS", raising=False)
    monkeypatch.setenv("USE_FAKE_REDIS_FOR_TESTS", "1")
    monkeypatch.setattr(FastAPILimiter, "redis", None, raising=False)
    app = FastAPI()

    await lifespan_mod._init_rate_limiter(app)

    assert app.state.rate_limit_enabled is True
    assert FastAPILimiter.redis is not None


@pytest.mark.asyncio
async def test_rate_limiter_init_failure_without_fallback(monkeypatch):
    monkeypatch.delenv("DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS", raising=False)
    monkeypatch.delenv("USE_FAKE_REDIS_FOR_TESTS", raising=False)
    monkeypatch.delenv("LOCAL_RATE_LIMIT_FALLBACK", raising=False)

    async def _boom(redis, *args, **kwargs):
        raise ConnectionError("redis down")

    monkeypatch.setattr(FastAPILimiter, "init", _boom)
    app = FastAPI()

    await lifespan_mod._init_rate_limiter(app)
    assert app.state.rate_limit_enabled is False

    monkeypatch.setenv("LOCAL_RATE_LIMIT_FALLBACK", "1")
    await lifespan_mod._init_rate_limiter(app)
    assert app.state.rate_limit_enabled is True


def test_context_is_kept_when_already_set(monkeypatch):
    app = FastAPI()
    ctx = make_context()
    app.state.context = ctx
    monkeypatch.setattr(lifespan_mod, "build_context", lambda: pytest.fail("should not rebuild"))

    lifespan_mod._init_context(app)
    assert app.state.context is ctx


def test_context_unavailable_without_supabase(monkeypatch):
    def _missing():
        raise RuntimeError("SUPABASE_URL manquant")

    monkeypatch.setattr(lifespan_mod, "build_context", _missing)
    app = FastAPI()

    lifespan_mod._init_context(app)
    assert app.state.context is None
