#!/usr/bin/env python3
"""
Generate an admin session token for local development
"""
import sys
import os
from datetime import timedelta

# Add parent directory to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from wallet_api.auth.jwt_auth import create_admin_session_token
from wallet_api.config.settings import settings


def main():
    """Generate and print admin token"""
    token = create_admin_session_token(timedelta(minutes=settings.ADMIN_SESSION_EXPIRE_MINUTES))
    print("=" * 80)
    print("ADMIN SESSION TOKEN (for local development)")
    print("=" * 80)
    print(token)
    print("=" * 80)
    print("\nUse this token in API requests:")
    print(f"   Authorization: Bearer {token}")
    print("\nExample curl commands:")
    print(f'   curl -H "Authorization: Bearer {token}" \\')
    print(f'     http://localhost:{settings.PORT}/api/admin/token-configs')
    print("\n   # Fund a user:")
    print(f'   curl -H "Authorization: Bearer {token}" \\')
    print('     -H "Content-Type: application/json" \\')
    print(f'     -X POST http://localhost:{settings.PORT}/api/admin/fund \\')
    print('     -d \'{"userId": "<user id>", "currency": "BTC", "amount": "0.5"}\'')
    print("=" * 80)
    return token


if __name__ == "__main__":
    main()
