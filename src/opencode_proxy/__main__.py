"""
Point d'entrée pour `python -m opencode_proxy`.
"""
import argparse
import dataclasses
import json
import sys

from .config.loader import load_config, reload_config, save_config, get_config_path
from .config.settings import ProxyConfig, normalize_auth_type
from .core.constants import AUTH_TYPE_APIKEY, DEFAULT_BIND, DEFAULT_PORT
from .core.exceptions import ConfigurationError, CredentialError, UpstreamUnavailableError
from .core.lifecycle import configure_logging
from .proxy.auth import get_token


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="claude-opencode-proxy",
        description="Proxy d'authentification entre la CLI Claude et une API compatible Anthropic"
    )
    parser.add_argument("--config", dest="config_path", default=None, help="Fichier de configuration JSON")
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Démarre le proxy (premier plan)")
    serve.add_argument("-p", "--port", type=int, default=DEFAULT_PORT, help=f"Port (défaut: {DEFAULT_PORT})")
    serve.add_argument("-b", "--bind", default=DEFAULT_BIND, help=f"Adresse d'écoute (défaut: {DEFAULT_BIND})")
    serve.add_argument("-v", "--verbose", action="store_true", help="Logs détaillés")
    serve.add_argument("-q", "--quiet", action="store_true", help="Aucun log (prioritaire sur --verbose)")

    config = subparsers.add_parser("config", help="Affiche ou modifie la configuration")
    config.add_argument("--target", help="URL de l'API upstream")
    config.add_argument("--auth-type", choices=["apikey", "token-file", "opencode"], help="Mode d'auth")
    config.add_argument("--api-key", "--auth-file", dest="api_key", help="Clé API ou chemin du fichier de tokens")
    config.add_argument("--login-url", "--auth-key", dest="login_url", help="Clé dans le fichier de tokens")
    config.add_argument("--cf-access", action=argparse.BooleanOptionalAction, default=None,
                        help="Headers Cloudflare Access")
    config.add_argument("--cf-client-id", help="Client ID du service token CF Access")
    config.add_argument("--cf-client-secret", help="Secret du service token CF Access")
    config.add_argument("--proxy", help="Proxy HTTP/HTTPS sortant")
    config.add_argument("--ca-cert", help="Certificat CA (PEM)")
    config.add_argument("--insecure-skip-verify", action=argparse.BooleanOptionalAction, default=None,
                        help="Désactive la vérification TLS (déconseillé)")
    config.add_argument("--reset", action="store_true", help="Revient aux valeurs par défaut")

    env = subparsers.add_parser("env", help="Affiche les variables d'environnement pour la CLI Claude")
    env.add_argument("-p", "--port", type=int, default=DEFAULT_PORT)

    subparsers.add_parser("status", help="Affiche la configuration courante et l'état du token")

    models = subparsers.add_parser("models", help="Liste les modèles disponibles chez l'upstream")
    models.add_argument("-j", "--json", action="store_true", help="Sortie JSON brute")
    models.add_argument("-s", "--source", default="",
                        help="'anthropic' (API directe) ou URL de base (défaut: cible configurée)")
    return parser


def cmd_serve(args) -> int:
    import uvicorn

    from .main import create_app

    listener = configure_logging(verbose=args.verbose, quiet=args.quiet)
    try:
        try:
            app = create_app(load_config(args.config_path), verbose=args.verbose, quiet=args.quiet)
        except ConfigurationError as e:
            print(f"❌ {e}", file=sys.stderr)
            return 1

        config = app.state.proxy_context.config
        print(f"🚀 Proxy: http://{args.bind}:{args.port} -> {config.target}")
        print(f"🔐 Auth: {config.auth_type}, CF-Access: {config.cf_access}")
        if config.insecure_skip_verify:
            print("⚠️ Vérification TLS désactivée (insecure_skip_verify)")
        if args.verbose and not args.quiet:
            print("Verbose: on")
        print()

        uvicorn.run(
            app,
            host=args.bind,
            port=args.port,
            log_level="critical" if args.quiet else "warning",
            access_log=False
        )
    finally:
        listener.stop()
    return 0


_CONFIG_FIELDS = (
    "target", "api_key", "login_url", "cf_access", "cf_client_id",
    "cf_client_secret", "proxy", "ca_cert", "insecure_skip_verify",
)


def cmd_config(args) -> int:
    try:
        config = load_config(args.config_path)
    except ConfigurationError as e:
        print(f"❌ {e}", file=sys.stderr)
        return 1

    changes = {name: getattr(args, name) for name in _CONFIG_FIELDS if getattr(args, name) is not None}
    if args.auth_type is not None:
        changes["auth_type"] = normalize_auth_type(args.auth_type)

    if not changes and not args.reset:
        print(json.dumps(config.to_dict(), indent=2))
        return 0

    if args.reset:
        config = ProxyConfig()
    config = dataclasses.replace(config, **changes)

    try:
        config.validate()
    except ConfigurationError as e:
        print(f"❌ {e}", file=sys.stderr)
        return 1

    path = save_config(config, args.config_path)
    print(f"✅ Config sauvegardée: {path}")
    print(json.dumps(reload_config(args.config_path).to_dict(), indent=2))
    return 0


def cmd_env(args) -> int:
    print(f"export ANTHROPIC_BASE_URL=http://127.0.0.1:{args.port}")
    return 0


def cmd_status(args) -> int:
    try:
        config = load_config(args.config_path)
    except ConfigurationError as e:
        print(f"❌ {e}", file=sys.stderr)
        return 1

    print("=== Proxy Config ===")
    print(f"Config:    {get_config_path(args.config_path)}")
    print(f"Target:    {config.target}")
    print(f"Auth:      {config.auth_type}")
    if config.auth_type == AUTH_TYPE_APIKEY:
        print(f"API key:   {_mask(config.api_key)}")
    else:
        print(f"Auth file: {config.api_key}")
        print(f"Login URL: {config.login_url}")
    print(f"CF-Access: {config.cf_access}")
    if config.proxy:
        print(f"Proxy:     {config.proxy}")
    if config.ca_cert:
        print(f"CA cert:   {config.ca_cert}")
    if config.insecure_skip_verify:
        print("⚠️ Insecure skip verify: True")

    print()
    print("=== Auth Status ===")
    try:
        credential = get_token(config)
        print(f"Token:     ✅ {len(credential.token)} chars ({credential.kind})")
    except CredentialError as e:
        print(f"Token:     ❌ {e.message}")
    return 0


def _mask(secret: str) -> str:
    """Garde les 4 derniers caractères d'une clé."""
    if len(secret) <= 8:
        return "*" * len(secret)
    return f"{'*' * 8}{secret[-4:]}"


def cmd_models(args) -> int:
    import anyio

    from .proxy.models import dump_models, fetch_models, format_models, static_models_lines

    try:
        config = load_config(args.config_path)
        listing = anyio.run(fetch_models, config, args.source)
    except (ConfigurationError, CredentialError, UpstreamUnavailableError) as e:
        print(f"❌ {e.message}", file=sys.stderr)
        return 1

    if listing is None:
        print("La cible configurée ne supporte pas l'endpoint /v1/models.")
        print()
        print("Lister les modèles directement chez Anthropic (clé API requise):")
        print("  claude-opencode-proxy models --source anthropic")
        print()
        print("Modèles Claude courants:")
        print("\n".join(static_models_lines()))
        return 0

    if args.json:
        print(dump_models(listing))
        return 0

    print("\n".join(format_models(listing, config.target)))
    return 0


COMMANDS = {
    "serve": cmd_serve,
    "config": cmd_config,
    "env": cmd_env,
    "status": cmd_status,
    "models": cmd_models,
}


def main(argv=None) -> int:
    """Fonction principale."""
    args = build_parser().parse_args(argv)
    return COMMANDS[args.command](args)


if __name__ == "__main__":
    sys.exit(main())
