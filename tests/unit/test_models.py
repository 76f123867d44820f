"""
Tests unitaires pour la liste des modèles (`GET /v1/models`).
"""
import dataclasses

import httpx
import pytest

from opencode_proxy.core.exceptions import CredentialError, UpstreamUnavailableError
from opencode_proxy.proxy.models import (
    fetch_models,
    format_models,
    model_family,
    models_url,
    static_models_lines,
)

LISTING = {
    "data": [
        {"id": "claude-3-opus-20240229", "display_name": "Claude 3 Opus", "created_at": "2024-02-29T00:00:00Z"},
        {"id": "claude-3-5-sonnet-20241022", "display_name": "Claude 3.5 Sonnet", "created_at": "2024-10-22T00:00:00Z"},
        {"id": "claude-sonnet-4-20250514"},
    ],
    "has_more": False,
}


def recording_client(status_code=200, json_body=None, seen=None):
    def handler(request):
        if seen is not None:
            seen.append(request)
        if json_body is None:
            return httpx.Response(status_code, text="not found")
        return httpx.Response(status_code, json=json_body)
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestModelsUrl:

    def test_configured_target(self, apikey_config):
        assert models_url(apikey_config) == ("https://upstream.test/anthropic/v1/models", False)

    @pytest.mark.parametrize("source", ["anthropic", "direct"])
    def test_direct_anthropic(self, apikey_config, source):
        assert models_url(apikey_config, source) == ("https://api.anthropic.com/v1/models", True)

    def test_custom_source(self, apikey_config):
        assert models_url(apikey_config, "https://other.test/") == ("https://other.test/v1/models", False)


class TestFetchModels:

    @pytest.mark.asyncio
    async def test_uses_gateway_headers_on_configured_target(self, token_file_config):
        seen = []
        listing = await fetch_models(token_file_config, client=recording_client(json_body=LISTING, seen=seen))

        assert listing == LISTING
        request = seen[0]
        assert request.method == "GET"
        assert str(request.url) == "https://upstream.test/anthropic/v1/models"
        assert request.headers["cf-access-token"] == "tok-123"
        assert request.headers["anthropic-version"] == "2023-06-01"

    @pytest.mark.asyncio
    async def test_direct_source_skips_gateway(self, apikey_config):
        seen = []
        config = dataclasses.replace(apikey_config, cf_access=True)
        await fetch_models(config, "anthropic", client=recording_client(json_body=LISTING, seen=seen))

        headers = seen[0].headers
        assert headers["x-api-key"] == "sk-ant-test"
        assert "cf-access-token" not in headers

    @pytest.mark.asyncio
    async def test_404_on_configured_target_returns_none(self, apikey_config):
        assert await fetch_models(apikey_config, client=recording_client(404)) is None

    @pytest.mark.asyncio
    async def test_404_on_explicit_source_is_an_error(self, apikey_config):
        with pytest.raises(UpstreamUnavailableError):
            await fetch_models(apikey_config, "https://other.test", client=recording_client(404))

    @pytest.mark.asyncio
    async def test_error_status_raises(self, apikey_config):
        with pytest.raises(UpstreamUnavailableError) as exc_info:
            await fetch_models(apikey_config, client=recording_client(401, {"error": "unauthorized"}))
        assert "401" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_transport_error_raises(self, apikey_config):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        with pytest.raises(UpstreamUnavailableError):
            await fetch_models(apikey_config, client=client)

    @pytest.mark.asyncio
    async def test_missing_token_raises_before_any_request(self, token_file_config, tmp_path):
        seen = []
        config = dataclasses.replace(token_file_config, api_key=str(tmp_path / "absent.json"))
        with pytest.raises(CredentialError):
            await fetch_models(config, client=recording_client(json_body=LISTING, seen=seen))
        assert seen == []


class TestFormatModels:

    @pytest.mark.parametrize("model_id,family", [
        ("claude-3-5-haiku-20241022", "claude-3-5"),
        ("claude-3.5-sonnet", "claude-3-5"),
        ("claude-3-opus-20240229", "claude-3"),
        ("claude-2.1", "claude-2"),
        ("claude-opus-4-20250514", "other"),
    ])
    def test_model_family(self, model_id, family):
        assert model_family(model_id) == family

    def test_grouped_by_family_in_fixed_order(self):
        lines = format_models(LISTING, "https://upstream.test/anthropic")

        assert lines[0] == "Available models from https://upstream.test/anthropic:"
        assert lines.index("  Claude 3.5:") < lines.index("  Claude 3:") < lines.index("  Other:")
        assert "    • Claude 3.5 Sonnet (Oct 2024)" in lines
        assert "    • claude-sonnet-4-20250514" in lines
        assert lines[-1] == "Total: 3 models"

    def test_static_list_ends_with_note(self):
        lines = static_models_lines()
        assert "    • claude-3-5-sonnet-20241022 (latest)" in lines
        assert lines[-1].startswith("Note:")
