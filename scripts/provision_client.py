#!/usr/bin/env python3
"""CLI script to provision a new client (tenant) config.

Usage:
    python scripts/provision_client.py --client-id acme --name "Acme Plumbing" \
        --crm leadconnector --api-token pit-xxx --location-id loc123 \
        --spreadsheet-id 1AbC... --timezone America/Chicago --team-user u1 --team-user u2

Writes clients/<client-id>/config.json (or CLIENTS_DIR from the environment or
.env file) with a freshly generated API secret and prints the secret once.
"""

from __future__ import annotations

import argparse
import os
import secrets
import sys

# Ensure project root is on sys.path so we can import src.crmsync
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from dotenv import load_dotenv  # noqa: E402

# Load .env from project root
load_dotenv(os.path.join(os.path.dirname(__file__), "..", ".env"))


def provision(args: argparse.Namespace) -> None:
    """Build the client config from CLI args and write it to disk."""
    from src.crmsync.config import get_settings
    from src.crmsync.core.clients import write_client_config
    from src.crmsync.schemas.client import ClientConfig, CRMConfig

    settings = get_settings()
    api_secret = args.api_secret or secrets.token_urlsafe(32)

    config = ClientConfig(
        client_id=args.client_id,
        client_name=args.name,
        api_secret=api_secret,
        crm=CRMConfig(
            type=args.crm,
            api_token=args.api_token,
            location_id=args.location_id,
            api_version=args.api_version,
        ),
        spreadsheet_id=args.spreadsheet_id,
        timezone=args.timezone or settings.DEFAULT_TIMEZONE,
        team_user_ids=args.team_user or [],
    )

    path = write_client_config(
        args.clients_dir or settings.CLIENTS_DIR, config, overwrite=args.overwrite
    )
    print("Client provisioned successfully:")
    print(f"  ID:     {config.client_id}")
    print(f"  Name:   {config.client_name}")
    print(f"  CRM:    {config.crm.type}")
    print(f"  Config: {path}")
    if not args.api_secret:
        print(f"  API secret (store it now, it is not shown again): {api_secret}")


def main() -> None:
    parser = argparse.ArgumentParser(description="Provision a new client config")
    parser.add_argument("--client-id", required=True, help="Client id (letters, digits, - and _)")
    parser.add_argument("--name", required=True, help="Client display name")
    parser.add_argument(
        "--crm",
        default="leadconnector",
        help="CRM type (leadconnector, hubspot, spreadsheet, ...)",
    )
    parser.add_argument("--api-token", default=None, help="CRM API token")
    parser.add_argument("--location-id", default=None, help="LeadConnector location id")
    parser.add_argument("--api-version", default=None, help="LeadConnector Version header")
    parser.add_argument("--spreadsheet-id", required=True, help="Target Google spreadsheet id")
    parser.add_argument("--timezone", default=None, help="IANA timezone for sync windows")
    parser.add_argument("--team-user", action="append", help="Calendar user id (repeatable)")
    parser.add_argument("--api-secret", default=None, help="Use this secret instead of generating one")
    parser.add_argument("--clients-dir", default=None, help="Override CLIENTS_DIR")
    parser.add_argument("--overwrite", action="store_true", help="Replace an existing config")
    args = parser.parse_args()

    try:
        provision(args)
    except ValueError as exc:
        parser.error(str(exc))


if __name__ == "__main__":
    main()
