#!/usr/bin/env python3
"""
Generate API keys for clinic users.
Creates secure random API keys that can be inserted into the users table.
"""

import secrets
import string
import uuid

ROLES = ("admin", "doctor", "nurse", "member")


def generate_api_key(prefix="sc", length=32):
    """Generate a secure random API key."""
    chars = string.ascii_letters + string.digits
    random_part = ''.join(secrets.choice(chars) for _ in range(length))
    return f"{prefix}_{random_part}"


def insert_statement(name, email, role, api_key):
    """SQL that creates an active user holding *api_key*."""
    if role not in ROLES:
        raise ValueError(f"Unknown role '{role}'")
    return f"""
INSERT INTO users
    (id, name, email, role, api_key, is_active, banned, created_at)
VALUES
    ('{uuid.uuid4()}', '{name}', '{email}', '{role}', '{api_key}', TRUE, FALSE, CURRENT_TIMESTAMP);
"""


if __name__ == "__main__":
    print("=" * 70)
    print("SmartClinic API Key Generator")
    print("=" * 70)
    print()

    print("Single API Key:")
    print("-" * 70)
    api_key = generate_api_key()
    print(f"  {api_key}")
    print()

    print("=" * 70)
    print("SQL Insert Examples:")
    print("=" * 70)

    examples = [
        ("Clinic Admin", "admin@clinic.example", "admin", api_key),
        ("Dr. Jane Park", "jpark@clinic.example", "doctor", generate_api_key()),
        ("Sam Rivera, RN", "srivera@clinic.example", "nurse", generate_api_key()),
        ("Front Desk", "frontdesk@clinic.example", "member", generate_api_key()),
    ]
    for name, email, role, key in examples:
        print(f"\n-- For a {role}:")
        print(insert_statement(name, email, role, key))

    print("=" * 70)
    print("Note: Run these SQL statements in your database to create users.")
    print("=" * 70)
