#!/usr/bin/env python3
"""
Xero tenant console - OAuth2 connect/disconnect demo for the Xero accounting API.
"""

import argparse
import logging
import sys

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s", stream=sys.stderr
)

#
# NOTE: Keep xero_app imports lazy (inside functions) so `--help` works without the
# server dependencies installed.
#


def print_consent_url() -> None:
    """Print a consent URL for the configured app registration."""
    from xero_app.auth.config import load_app_config
    from xero_app.auth.util import new_oauth_state
    from xero_app.providers.xero_provider import DefaultXeroClient

    cfg = load_app_config()
    client = DefaultXeroClient(cfg)
    print(client.build_consent_url(new_oauth_state()))


def main():
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Connect a browser session to Xero organisations via OAuth2",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run the console on PORT (default 5000)
  python main.py --serve

  # Run on a specific port
  python main.py --serve --port 8080

  # Print a consent URL (checks CLIENT_ID / REDIRECT_URI registration)
  python main.py --consent-url
        """,
    )

    parser.add_argument("--serve", action="store_true", help="Run the HTTP console")
    parser.add_argument(
        "--consent-url", action="store_true", help="Print a Xero consent URL for the configured app and exit"
    )
    parser.add_argument("--host", default="0.0.0.0", help="Server bind host (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, default=None, help="Server listen port (default: $PORT or 5000)")

    args = parser.parse_args()

    from xero_app.auth.config import ConfigError

    try:
        if args.serve:
            from xero_app.api.server import run

            run(host=args.host, port=args.port)
            return

        if args.consent_url:
            print_consent_url()
            return

        # No arguments provided
        parser.print_help()

    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
