#!/usr/bin/env python3
"""iiskills.cloud Gateway: payments, OTP entitlements and content discovery.

Launch: python3 gateway.py
Serves at http://0.0.0.0:8000 (or PORT env var)
"""

import sys

import uvicorn

from iiskills_gateway import config


def main():
    print("=" * 60)
    print("  iiskills.cloud Gateway")
    print("=" * 60)

    missing = [name for name in ("SUPABASE_URL", "SUPABASE_SERVICE_KEY")
               if not getattr(config, name)]
    if missing:
        print(f"\n  WARNING: {', '.join(missing)} not set.")
        print("  Payments are accepted but not stored; profile routes return 503.\n")

    if not config.OTP_SECRET and config.ENVIRONMENT != "development":
        print("\n  ERROR: OTP_SECRET must be set outside development.")
        sys.exit(1)

    for name in ("AIENTER_CONFIRMATION_SIGNING_SECRET", "ADMIN_API_KEY"):
        if not getattr(config, name):
            print(f"  WARNING: {name} not set")

    print(f"\nStarting server on {config.HOST}:{config.PORT}")
    print(f"  API docs: http://{config.HOST}:{config.PORT}/api/docs")
    print("  Press Ctrl+C to stop\n")

    from iiskills_gateway.app import create_app
    app = create_app()
    uvicorn.run(app, host=config.HOST, port=config.PORT, log_level="info")


if __name__ == "__main__":
    main()
