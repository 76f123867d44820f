"""
Configuration des tests pytest.
"""
import json
import logging
import os
import sys

import httpx
import pytest

# Ajoute src au path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from opencode_proxy.config.loader import _clear_config_cache  # noqa: E402
from opencode_proxy.config.settings import ProxyConfig  # noqa: E402
from opencode_proxy.main import create_app  # noqa: E402
from opencode_proxy.proxy.client import ProxyClient  # noqa: E402

UPSTREAM = "https://upstream.test/anthropic"
LOGIN_URL = "https://opencode.test"


@pytest.fixture(autouse=True)
def clear_config_cache(monkeypatch):
    """Chaque test repart d'un cache de config vide, sans variable d'env parasite."""
    monkeypatch.delenv("CLAUDE_OPENCODE_PROXY_CONFIG", raising=False)
    _clear_config_cache()
    yield
    _clear_config_cache()


@pytest.fixture(autouse=True)
def reset_proxy_logger():
    """configure_logging() coupe la propagation: on la rétablit pour caplog."""
    yield
    root = logging.getLogger("opencode_proxy")
    for handler in list(root.handlers):
        root.removeHandler(handler)
    root.propagate = True
    root.setLevel(logging.NOTSET)


@pytest.fixture
def apikey_config():
    """Config clé API, sans CF Access."""
    return ProxyConfig(
        target=UPSTREAM,
        auth_type="apikey",
        api_key="sk-ant-test",
        cf_access=False
    )


@pytest.fixture
def token_file(tmp_path):
    """Fichier de tokens au format OpenCode."""
    path = tmp_path / "auth.json"
    path.write_text(json.dumps({LOGIN_URL: {"token": "tok-123"}}), encoding="utf-8")
    return path


@pytest.fixture
def token_file_config(token_file):
    """Config fichier de tokens derrière CF Access."""
    return ProxyConfig(
        target=UPSTREAM,
        auth_type="token-file",
        api_key=str(token_file),
        login_url=LOGIN_URL,
        cf_access=True
    )


@pytest.fixture
def make_app():
    """
    Construit l'app avec un upstream simulé (httpx.MockTransport).

    Usage: app = make_app(handler, config, verbose=True)
    """
    def _make(handler, config, **kwargs):
        client = ProxyClient(httpx.AsyncClient(transport=httpx.MockTransport(handler)))
        return create_app(config, client=client, **kwargs)
    return _make


@pytest.fixture
def upstream_response():
    """
    Réponse upstream simulée dont le body reste à lire (comme un vrai transport).

    Pourquoi stream=: avec content=, httpx lit et décode le body dès la
    construction, et aiter_raw() n'est plus disponible.
    """
    def _make(status_code=200, body=b"", headers=None):
        return httpx.Response(status_code, headers=headers or {}, stream=httpx.ByteStream(body))
    return _make
