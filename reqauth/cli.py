"""Command line interface for signing requests and running OAuth 2.0 flows."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Dict, List, Optional

from reqauth.config import get_profile, get_secret_key
from reqauth.credentials import BasicCredentials, DigestCredentials
from reqauth.digest import parse_digest_challenge
from reqauth.errors import ReqAuthError
from reqauth.header_builder import HttpRequest, build_request_auth
from reqauth.oauth2_flows import FlowState, OAuth2FlowManager, OAuthToken
from reqauth.schemes import AuthType

logger = logging.getLogger(__name__)


def _parse_headers(values: List[str]) -> Dict[str, str]:
    headers = {}
    for value in values:
        name, sep, content = value.partition(":")
        if not sep or not name.strip():
            raise argparse.ArgumentTypeError(f"Invalid header: {value!r}")
        headers[name.strip()] = content.strip()
    return headers


def _parse_params(values: List[str]) -> Dict[str, str]:
    params = {}
    for value in values:
        name, sep, content = value.partition("=")
        if not sep or not name:
            raise argparse.ArgumentTypeError(f"Invalid parameter: {value!r}")
        params[name] = content
    return params


def _print_token(token: OAuthToken) -> None:
    print(json.dumps(token.to_dict(), indent=2))


def cmd_sign(args: argparse.Namespace) -> int:
    profile = get_profile(args.profile, args.config)
    request = HttpRequest(
        method=args.method.upper(),
        url=args.url,
        headers=_parse_headers(args.header),
        body=args.data or b"",
        params=_parse_params(args.param),
    )

    if profile.auth_type is AuthType.DIGEST and args.challenge:
        basic = BasicCredentials.from_dict(profile.data)
        scheme = DigestCredentials.from_challenge(
            basic.username,
            basic.password,
            parse_digest_challenge(args.challenge),
            request.method,
            request.request_uri,
        )
    else:
        scheme = profile.credentials()

    result = build_request_auth(scheme, request)
    for name, value in result.headers.items():
        print(f"{name}: {value}")
    for name, value in result.query_params.items():
        print(f"?{name}={value}")
    return 0


def cmd_authorize(args: argparse.Namespace) -> int:
    manager = OAuth2FlowManager(get_profile(args.profile, args.config).oauth2_config())
    url, flow_state = manager.authorization_url()
    print(url)
    print(flow_state.seal(get_secret_key(args.config)))
    return 0


def cmd_exchange(args: argparse.Namespace) -> int:
    manager = OAuth2FlowManager(get_profile(args.profile, args.config).oauth2_config())
    flow_state = FlowState.unseal(args.flow_state, get_secret_key(args.config))
    _print_token(manager.complete_authorization(args.callback_url, flow_state))
    return 0


def cmd_client_credentials(args: argparse.Namespace) -> int:
    manager = OAuth2FlowManager(get_profile(args.profile, args.config).oauth2_config())
    scopes = args.scope.split() if args.scope else None
    _print_token(manager.client_credentials(scopes))
    return 0


def cmd_refresh(args: argparse.Namespace) -> int:
    manager = OAuth2FlowManager(get_profile(args.profile, args.config).oauth2_config())
    _print_token(manager.refresh(args.refresh_token))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="reqauth", description="Sign HTTP requests and obtain OAuth 2.0 tokens."
    )
    parser.add_argument("-c", "--config", help="Path to the YAML profile file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    sign = subparsers.add_parser("sign", help="Print auth headers for a request")
    sign.add_argument("profile")
    sign.add_argument("method")
    sign.add_argument("url")
    sign.add_argument("-H", "--header", action="append", default=[], help="'Name: value'")
    sign.add_argument("-d", "--data", help="Request body")
    sign.add_argument(
        "-p", "--param", action="append", default=[], help="Query parameter 'key=value'"
    )
    sign.add_argument("--challenge", help="WWW-Authenticate value answered by a digest profile")
    sign.set_defaults(func=cmd_sign)

    authorize = subparsers.add_parser(
        "authorize", help="Print the authorization URL and sealed flow state"
    )
    authorize.add_argument("profile")
    authorize.set_defaults(func=cmd_authorize)

    exchange = subparsers.add_parser("exchange", help="Exchange a redirect callback for a token")
    exchange.add_argument("profile")
    exchange.add_argument("callback_url")
    exchange.add_argument("flow_state", help="Sealed flow state printed by 'authorize'")
    exchange.set_defaults(func=cmd_exchange)

    client_credentials = subparsers.add_parser(
        "client-credentials", help="Obtain a token with the client credentials grant"
    )
    client_credentials.add_argument("profile")
    client_credentials.add_argument("--scope", help="Space-separated scopes")
    client_credentials.set_defaults(func=cmd_client_credentials)

    refresh = subparsers.add_parser("refresh", help="Refresh an access token")
    refresh.add_argument("profile")
    refresh.add_argument("refresh_token")
    refresh.set_defaults(func=cmd_refresh)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        return args.func(args)
    except (ReqAuthError, argparse.ArgumentTypeError) as exc:
        logger.debug("Command %s failed", args.command, exc_info=True)
        print(f"error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
