#!/usr/bin/env python3
"""
Post-Deployment Health Check Script

Probes a deployed API and reports whether it is serving traffic.

Usage:
    python scripts/health_check.py --url <DEPLOYMENT_URL> [--county <slug>]

Checks Performed:
    1. /api/health returns 200 and reports the database as connected
    2. /api/public/counties lists at least one active county
    3. /api/public/deals answers for the given county (X-County-Slug header)
    4. /api/identity/me rejects anonymous requests with 401

Exit Codes:
    0: All health checks passed
    1: One or more health checks failed
"""

import argparse
import sys
import time
import requests
from typing import Dict, Optional, Tuple


def _get(url: str, endpoint: str, timeout: int, headers: Optional[Dict[str, str]] = None):
    return requests.get(f"{url.rstrip('/')}{endpoint}", timeout=timeout, headers=headers or {})


def check_health(url: str, timeout: int = 10) -> Tuple[bool, str]:
    """
    Checks /api/health and its database status.

    Returns:
        Tuple[bool, str]: (success, message)
    """
    try:
        response = _get(url, "/api/health", timeout)
        data = response.json()
    except requests.exceptions.RequestException as e:
        return False, f"✗ /api/health request failed: {e}"
    except ValueError:
        return False, "✗ /api/health returned invalid JSON"

    if response.status_code == 200 and data.get('database') == 'connected':
        return True, "✓ /api/health returned 200, database connected"
    return False, f"✗ /api/health returned {response.status_code}, database {data.get('database')}"


def check_counties(url: str, timeout: int = 10) -> Tuple[bool, str, Optional[str]]:
    """Returns the first active county slug so later checks can use it."""
    try:
        response = _get(url, "/api/public/counties", timeout)
        counties = response.json().get('counties', [])
    except requests.exceptions.RequestException as e:
        return False, f"✗ /api/public/counties request failed: {e}", None
    except ValueError:
        return False, "✗ /api/public/counties returned invalid JSON", None

    if response.status_code != 200:
        return False, f"✗ /api/public/counties returned {response.status_code}", None
    if not counties:
        return False, "✗ /api/public/counties returned no active counties", None
    return True, f"✓ /api/public/counties listed {len(counties)} active counties", counties[0]['slug']


def check_public_deals(url: str, county_slug: Optional[str], timeout: int = 10) -> Tuple[bool, str]:
    if not county_slug:
        return False, "✗ /api/public/deals skipped: no county available"

    try:
        response = _get(url, "/api/public/deals", timeout, headers={'X-County-Slug': county_slug})
    except requests.exceptions.RequestException as e:
        return False, f"✗ /api/public/deals request failed: {e}"

    if response.status_code == 200:
        deals = response.json().get('deals', [])
        return True, f"✓ /api/public/deals returned {len(deals)} deals for {county_slug}"
    return False, f"✗ /api/public/deals returned {response.status_code} for {county_slug}"


def check_auth_guard(url: str, timeout: int = 10) -> Tuple[bool, str]:
    try:
        response = _get(url, "/api/identity/me", timeout)
    except requests.exceptions.RequestException as e:
        return False, f"✗ /api/identity/me request failed: {e}"

    if response.status_code == 401:
        return True, "✓ /api/identity/me rejects anonymous requests"
    return False, f"✗ /api/identity/me returned {response.status_code} (expected 401)"


def run_health_checks(url: str, county: Optional[str]) -> Dict[str, Tuple[bool, str]]:
    print(f"\n{'='*60}")
    print(f"Post-Deployment Health Checks: {url}")
    print(f"{'='*60}\n")

    results = {}

    success, message = check_health(url, timeout=15)
    results["api_health"] = (success, message)
    print(f"  {message}")

    success, message, first_slug = check_counties(url, timeout=15)
    results["counties"] = (success, message)
    print(f"  {message}")

    success, message = check_public_deals(url, county or first_slug, timeout=15)
    results["public_deals"] = (success, message)
    print(f"  {message}")

    success, message = check_auth_guard(url, timeout=15)
    results["auth_guard"] = (success, message)
    print(f"  {message}\n")

    return results


def print_summary(results: Dict[str, Tuple[bool, str]]) -> bool:
    passed = sum(1 for success, _ in results.values() if success)
    total = len(results)

    for check_name, (success, _) in results.items():
        print(f"{'✓' if success else '✗'} {check_name}: {'PASS' if success else 'FAIL'}")

    print(f"\nTotal: {passed}/{total} checks passed\n")
    return passed == total


def main():
    parser = argparse.ArgumentParser(description="Run post-deployment health checks")
    parser.add_argument("--url", required=True, help="Deployment URL to check")
    parser.add_argument("--county", help="County slug for the public deals check")
    parser.add_argument("--retry", type=int, default=3,
                        help="Number of attempts if checks fail (default: 3)")
    parser.add_argument("--retry-delay", type=int, default=10,
                        help="Delay in seconds between attempts (default: 10)")
    args = parser.parse_args()

    for attempt in range(1, args.retry + 1):
        if attempt > 1:
            print(f"Retry attempt {attempt}/{args.retry}")
            time.sleep(args.retry_delay)

        if print_summary(run_health_checks(args.url, args.county)):
            sys.exit(0)

    print(f"✗ HEALTH CHECKS FAILED AFTER {args.retry} ATTEMPTS", file=sys.stderr)
    sys.exit(1)


if __name__ == "__main__":
    main()
