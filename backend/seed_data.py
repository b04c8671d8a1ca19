"""
Demo Seeder - creates players and plays a short game through the API.

Creates an admin and three players directly in the database, issues a
session token for each, then drives the HTTP API:
request -> approve -> a chain of captures. Prints the tokens so they can
be used from the browser or curl.

Usage:
    python seed_data.py                              # Uses default URL
    python seed_data.py http://localhost:8000         # Custom API URL
"""

import os
import sys
from datetime import datetime, timedelta, timezone

import httpx

from app.database import SessionLocal, create_tables
from app.models.user import ROLE_ADMIN
from app.services import user_service

DEMO_USERS = [
    ("Admin", "admin@example.com", ROLE_ADMIN),
    ("Alice", "alice@example.com", "user"),
    ("Bob", "bob@example.com", "user"),
    ("Carol", "carol@example.com", "user"),
]


def ensure_users():
    """Create the demo users if missing and return {email: token}."""
    create_tables()
    db = SessionLocal()
    try:
        tokens = {}
        for name, email, role in DEMO_USERS:
            user = user_service.get_user_by_email(db, email)
            if user is None:
                user = user_service.create_user(db, name, email, role)
            tokens[email] = user_service.create_session(db, user.id)
        return tokens
    finally:
        db.close()


def call(client, method, path, token, **kwargs):
    resp = client.request(method, path, headers={"Authorization": f"Bearer {token}"}, **kwargs)
    if resp.status_code >= 400:
        print(f"  ❌ {method} {path} → {resp.status_code}: {resp.text}")
        sys.exit(1)
    return resp.json()


def main():
    api_url = sys.argv[1] if len(sys.argv) > 1 else os.getenv("API_URL", "http://localhost:8000")

    tokens = ensure_users()
    admin = tokens["admin@example.com"]
    alice = tokens["alice@example.com"]
    bob = tokens["bob@example.com"]
    carol = tokens["carol@example.com"]

    print(f"Seeding game via: {api_url}")
    print()

    with httpx.Client(base_url=api_url, timeout=30.0) as client:
        created = call(client, "POST", "/api/flag-requests", alice)
        request_id = created["request"]["id"]
        print(f"  ✅ Alice requested a flag ({request_id[:8]}...)")

        approved = call(client, "POST", f"/api/admin/flag-requests/{request_id}/approve", admin)
        flag_number = approved["flag_number"]
        print(f"  ✅ Admin approved it as flag #{flag_number}")

        start = datetime.now(timezone.utc) - timedelta(days=2)
        for hours, name, token in [(1, "Bob", bob), (20, "Carol", carol)]:
            call(client, "POST", "/api/captures", token, json={
                "flag_number": flag_number,
                "captured_at": (start + timedelta(hours=hours)).isoformat(),
                "notes": f"Seeded capture by {name}",
            })
            print(f"  ✅ {name} captured flag #{flag_number}")

        detail = call(client, "GET", f"/api/flags/{flag_number}", alice)
        stats = call(client, "GET", "/api/stats/me", carol)

    print()
    print("=" * 60)
    print("SEED SUMMARY")
    print("=" * 60)
    print(f"  Flag #{flag_number} held by: {detail['current_owner']['name']}")
    print(f"  Captures recorded:          {len(detail['capture_history'])}")
    print(f"  Carol's stats:              {stats['stats']}")
    print("=" * 60)
    print()
    print("Session tokens (Authorization: Bearer <token>):")
    for email, token in tokens.items():
        print(f"  {email:<22} {token}")


if __name__ == "__main__":
    main()
