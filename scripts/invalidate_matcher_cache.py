"""Tell a running match engine to drop its candidate cache.

Intended as the last step of the Notion sync job, so newly synced playdates
and materials show up in the matcher immediately.

Usage:
    ADMIN_API_KEY=... uv run python scripts/invalidate_matcher_cache.py \
        [--base-url http://localhost:8000]
"""

from __future__ import annotations

import argparse
import os
import sys

import httpx


def main() -> None:
    parser = argparse.ArgumentParser(description="Invalidate the matcher candidate cache")
    parser.add_argument("--base-url", default="http://localhost:8000", help="Match engine base URL")
    parser.add_argument("--timeout", type=float, default=10.0, help="Request timeout in seconds")
    args = parser.parse_args()

    api_key = os.getenv("ADMIN_API_KEY")
    if not api_key:
        print("ERROR: ADMIN_API_KEY is not set")
        sys.exit(1)

    url = f"{args.base_url.rstrip('/')}/v1/matcher/cache/invalidate"
    try:
        response = httpx.post(url, headers={"X-API-Key": api_key}, timeout=args.timeout)
        response.raise_for_status()
    except httpx.HTTPError as e:
        print(f"ERROR: invalidation failed: {e}")
        sys.exit(1)

    print(f"Matcher cache invalidated at {url}")


if __name__ == "__main__":
    main()
