#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Health Checker CLI Tool
Quick script to check that the Quote Bridge API is up and can reach Lexware
"""
import sys
from pathlib import Path

import requests

# Fix encoding for Windows
if sys.platform == 'win32':
    import io
    sys.stdout = io.TextIOWrapper(sys.stdout.buffer, encoding='utf-8', errors='replace')
    sys.stderr = io.TextIOWrapper(sys.stderr.buffer, encoding='utf-8', errors='replace')

# Add src to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT / 'src'))


def _base_url():
    from quote_bridge.quote_config import API_PORT
    return f"http://localhost:{API_PORT}"


def check_health():
    """Check the API liveness endpoint"""
    url = f"{_base_url()}/health"

    print("\n" + "="*80)
    print("QUOTE BRIDGE - HEALTH CHECK")
    print("="*80 + "\n")

    try:
        response = requests.get(url, timeout=5)
    except requests.exceptions.ConnectionError:
        print("❌ Cannot connect to the API")
        print(f"   Is the server running? Check {url}\n")
        return False
    except requests.exceptions.Timeout:
        print("❌ Health check timed out")
        return False

    data = response.json()
    if response.ok and data.get('ok'):
        print(f"✅ Status: UP (version {data.get('version', '?')})")
        return True

    print(f"❌ Status: DOWN (HTTP {response.status_code})")
    return False


def check_lexware():
    """Check the Lexware connection through /api-test"""
    url = f"{_base_url()}/api-test"

    try:
        response = requests.get(url, timeout=30)
    except requests.exceptions.RequestException as e:
        print(f"❌ Could not reach {url}: {e}\n")
        return False

    data = response.json()
    if data.get('ok'):
        print(f"🔗 Lexware: ✅ connected ({data.get('org')})")
        return True

    print(f"🔗 Lexware: ❌ {data.get('message', 'unknown error')}")
    return False


def main():
    """Main CLI entry point"""
    if len(sys.argv) > 1:
        command = sys.argv[1].lower()

        if command == 'lexware':
            ok = check_lexware()
            print("\n" + "="*80 + "\n")
            sys.exit(0 if ok else 1)
        else:
            print("Usage: python check_health.py [lexware]")
            print("\nCommands:")
            print("  (none)    - Check API liveness")
            print("  lexware   - Check the Lexware API key via /api-test")
            sys.exit(1)
    else:
        # Default: health check
        is_healthy = check_health()
        print("\n" + "="*80 + "\n")
        sys.exit(0 if is_healthy else 1)


if __name__ == "__main__":
    main()
