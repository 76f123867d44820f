"""
Tests unitaires pour la CLI (config, env, status, models).
"""
import json
from unittest.mock import patch

import httpx
import pytest

from opencode_proxy.__main__ import build_parser, main


@pytest.fixture
def config_path(tmp_path):
    return str(tmp_path / "config.json")


def test_serve_defaults():
    args = build_parser().parse_args(["serve"])
    assert args.port == 8787
    assert args.bind == "127.0.0.1"
    assert args.verbose is False
    assert args.quiet is False


def test_env_prints_base_url(capsys):
    assert main(["env", "-p", "9000"]) == 0
    assert capsys.readouterr().out.strip() == "export ANTHROPIC_BASE_URL=http://127.0.0.1:9000"


class TestConfigCommand:

    def test_show_defaults(self, config_path, capsys):
        assert main(["--config", config_path, "config"]) == 0
        shown = json.loads(capsys.readouterr().out)
        assert shown["auth_type"] == "token-file"
        assert shown["cf_access"] is True

    def test_update_is_saved(self, config_path, capsys):
        code = main([
            "--config", config_path, "config",
            "--target", "https://api.anthropic.com",
            "--auth-type", "apikey",
            "--api-key", "sk-ant",
            "--no-cf-access",
        ])
        assert code == 0
        assert "✅" in capsys.readouterr().out

        with open(config_path) as f:
            saved = json.load(f)
        assert saved["target"] == "https://api.anthropic.com"
        assert saved["auth_type"] == "apikey"
        assert saved["api_key"] == "sk-ant"
        assert saved["cf_access"] is False

    def test_legacy_flag_names(self, config_path):
        main(["--config", config_path, "config", "--auth-type", "opencode",
              "--auth-file", "/tmp/auth.json", "--auth-key", "https://login.test"])

        with open(config_path) as f:
            saved = json.load(f)
        assert saved["auth_type"] == "token-file"
        assert saved["api_key"] == "/tmp/auth.json"
        assert saved["login_url"] == "https://login.test"

    def test_invalid_target_is_rejected(self, config_path, capsys):
        assert main(["--config", config_path, "config", "--target", "not-a-url"]) == 1
        assert "❌" in capsys.readouterr().err

    def test_reset(self, config_path, capsys):
        main(["--config", config_path, "config", "--target", "https://a.test"])
        assert main(["--config", config_path, "config", "--reset"]) == 0

        with open(config_path) as f:
            saved = json.load(f)
        assert saved["target"] == "https://opencode.custom.dev/anthropic"


class TestStatusCommand:

    def test_token_available(self, config_path, token_file, capsys):
        main(["--config", config_path, "config", "--auth-file", str(token_file),
              "--login-url", "https://opencode.test"])
        capsys.readouterr()

        assert main(["--config", config_path, "status"]) == 0
        out = capsys.readouterr().out
        assert "Token:     ✅ 7 chars (bearer)" in out
        assert "token-file" in out
        assert f"Auth file: {token_file}" in out
        assert "Login URL: https://opencode.test" in out

    def test_token_missing(self, config_path, tmp_path, capsys):
        main(["--config", config_path, "config", "--auth-file", str(tmp_path / "absent.json")])
        capsys.readouterr()

        assert main(["--config", config_path, "status"]) == 0
        assert "Token:     ❌" in capsys.readouterr().out

    def test_apikey_is_masked_and_transport_shown(self, config_path, capsys):
        main(["--config", config_path, "config", "--auth-type", "apikey", "--api-key", "sk-ant-0123456789",
              "--proxy", "http://corp-proxy:3128", "--ca-cert", "/etc/ssl/corp.pem", "--insecure-skip-verify"])
        capsys.readouterr()

        assert main(["--config", config_path, "status"]) == 0
        out = capsys.readouterr().out
        assert "API key:   ********6789" in out
        assert "sk-ant-0123456789" not in out
        assert "Proxy:     http://corp-proxy:3128" in out
        assert "CA cert:   /etc/ssl/corp.pem" in out
        assert "Insecure skip verify: True" in out
        assert "Token:     ✅ 17 chars (apikey)" in out

    def test_broken_config_file(self, config_path, capsys):
        with open(config_path, "w") as f:
            f.write("{oops")
        assert main(["--config", config_path, "status"]) == 1
        assert "❌" in capsys.readouterr().err


class TestModelsCommand:

    @pytest.fixture
    def apikey_config_path(self, config_path):
        main(["--config", config_path, "config", "--target", "https://upstream.test/anthropic",
              "--auth-type", "apikey", "--api-key", "sk-ant-test", "--no-cf-access"])
        return config_path

    def mock_upstream(self, status_code, json_body=None):
        def handler(request):
            if json_body is None:
                return httpx.Response(status_code, text="not found")
            return httpx.Response(status_code, json=json_body)
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        return patch("opencode_proxy.proxy.models.create_http_client", return_value=client)

    def test_lists_models(self, apikey_config_path, capsys):
        capsys.readouterr()
        with self.mock_upstream(200, {"data": [{"id": "claude-3-opus-20240229"}]}):
            assert main(["--config", apikey_config_path, "models"]) == 0

        out = capsys.readouterr().out
        assert "  Claude 3:" in out
        assert "claude-3-opus-20240229" in out
        assert "Total: 1 models" in out

    def test_json_output(self, apikey_config_path, capsys):
        capsys.readouterr()
        listing = {"data": [{"id": "claude-3-opus-20240229"}], "has_more": False}
        with self.mock_upstream(200, listing):
            assert main(["--config", apikey_config_path, "models", "--json"]) == 0

        assert json.loads(capsys.readouterr().out) == listing

    def test_unsupported_endpoint_shows_static_list(self, apikey_config_path, capsys):
        capsys.readouterr()
        with self.mock_upstream(404):
            assert main(["--config", apikey_config_path, "models"]) == 0

        out = capsys.readouterr().out
        assert "models --source anthropic" in out
        assert "claude-3-5-sonnet-20241022 (latest)" in out

    def test_upstream_error_exits_1(self, apikey_config_path, capsys):
        with self.mock_upstream(500, {"error": "boom"}):
            assert main(["--config", apikey_config_path, "models"]) == 1
        assert "❌" in capsys.readouterr().err
