import time

from fastapi import FastAPI, Depends, Request
from fastapi.testclient import TestClient
from fastapi_limiter import FastAPILimiter

from storefront.utils.rate_limit import optional_rate_limit, rate_limit_health_info


def _make_app(times=2, seconds=60):
    app = FastAPI()

    @app.post("/checkoutA", dependencies=[Depends(optional_rate_limit(times, seconds))])
    def checkout_a():
        return {"ok": True}

    @app.post("/checkoutB", dependencies=[Depends(optional_rate_limit(times, seconds))])
    def checkout_b():
        return {"ok": True}

    @app.get("/rl_info")
    def rl_info(request: Request):
        return rate_limit_health_info(request)

    return app


def test_local_fallback_blocks_after_limit(monkeypatch):
    monkeypatch.setenv("LOCAL_RATE_LIMIT_FALLBACK", "1")
    client = TestClient(_make_app(times=2))

    assert client.post("/checkoutA").status_code == 200
    assert client.post("/checkoutA").status_code == 200
    assert client.post("/checkoutA").status_code == 429


def test_limit_is_per_path_and_token(monkeypatch):
    monkeypatch.setenv("LOCAL_RATE_LIMIT_FALLBACK", "1")
    client = TestClient(_make_app(times=1))

    headers_a = {"Authorization": "Bearer token-a"}
    headers_b = {"Authorization": "Bearer token-b"}
    assert client.post("/checkoutA", headers=headers_a).status_code == 200
    assert client.post("/checkoutA", headers=headers_a).status_code == 429
    # autre utilisateur, même chemin
    assert client.post("/checkoutA", headers=headers_b).status_code == 200
    # même utilisateur, autre chemin
    assert client.post("/checkoutB", headers=headers_a).status_code == 200


def test_window_resets(monkeypatch):
    monkeypatch.setenv("LOCAL_RATE_LIMIT_FALLBACK", "1")
    client = TestClient(_make_app(times=1, seconds=1))

    assert client.post("/checkoutA").status_code == 200
    assert client.post("/checkoutA").status_code == 429
    time.sleep(1.1)
    assert client.post("/checkoutA").status_code == 200


def test_disabled_flag_bypasses_limit(monkeypatch):
    monkeypatch.delenv("LOCAL_RATE_LIMIT_FALLBACK", raising=False)
    app = _make_app(times=1)
    app.state.rate_limit_enabled = False
    client = TestClient(app)

    for _ in range(3):
        assert client.post("/checkoutA").status_code == 200


def test_health_info(monkeypatch):
    monkeypatch.delenv("LOCAL_RATE_LIMIT_FALLBACK", raising=False)
    app = _make_app()
    app.state.rate_limit_enabled = True
    client = TestClient(app)

    monkeypatch.setattr(FastAPILimiter, "redis", None, raising=False)
    info = client.get("/rl_info").json()
    assert info == {"enabled": True, "ready": False, "backend": None, "local_fallback": False}

    monkeypatch.setattr(FastAPILimiter, "redis", object(), raising=False)
    info = client.get("/rl_info").json()
    assert info["ready"] is True
    assert info["backend"] == "redis"
