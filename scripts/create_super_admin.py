#!/usr/bin/env python3
"""
Bootstraps the first SUPER_ADMIN identity.

Usage:
    python scripts/create_super_admin.py --email owner@example.com --password '...'

Promotion of an existing identity is refused: roles never change after creation.
"""

import argparse
import os
import sys

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from countylocal import create_app, db  # noqa: E402
from countylocal.models import UserIdentity, Role, IdentityStatus  # noqa: E402
from countylocal.services.identity import EMAIL_PATTERN, MIN_PASSWORD_LENGTH  # noqa: E402


def create_super_admin(email, password):
    email = email.strip().lower()
    if not EMAIL_PATTERN.match(email):
        raise ValueError("A valid email is required")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValueError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

    if UserIdentity.query.filter_by(email=email).first():
        raise ValueError(f"An identity already exists for {email}")

    identity = UserIdentity(email=email, role=Role.SUPER_ADMIN, status=IdentityStatus.ACTIVE)
    identity.set_password(password)
    db.session.add(identity)
    db.session.commit()
    return identity


def main():
    parser = argparse.ArgumentParser(description="Create the first SUPER_ADMIN identity")
    parser.add_argument("--email", required=True)
    parser.add_argument("--password", required=True)
    args = parser.parse_args()

    app = create_app()
    with app.app_context():
        try:
            identity = create_super_admin(args.email, args.password)
        except ValueError as e:
            print(f"✗ {e}", file=sys.stderr)
            sys.exit(1)

    print(f"✓ SUPER_ADMIN created: {identity.email} ({identity.id})")


if __name__ == "__main__":
    main()
