#!/usr/bin/env python3
"""
ThorEye Seed Script
Creates the first admin account (public registration only hands out auditor
and partner; the admin grants the other roles) and optionally
loads form definitions exported as JSON.

Usage:
    python -m scripts.seed_admin <email> <username> <password> [form.json ...]

Example:
    python -m scripts.seed_admin admin@thoreye.io admin securepassword123 forms/inbound.json
"""
import json
import sys
import os
from uuid import uuid4

# Add the parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy.orm import Session
from thoreye.database import SessionLocal, init_db
from thoreye.models.db_models import UserDB
from thoreye.models.ssot import FormDefinition
from thoreye.auth import hash_password
from thoreye.services.form_store import FormStore, DuplicateFormError


def create_admin_user(db: Session, email: str, username: str, password: str) -> bool:
    """Create an admin, or promote the existing account with that email."""
    existing = db.query(UserDB).filter(
        (UserDB.email == email) | (UserDB.username == username)
    ).first()

    if existing:
        if existing.email != email:
            print(f"Error: Username '{username}' already exists.")
            return False
        if existing.role == "admin":
            print(f"'{email}' is already an admin.")
            return True
        previous = existing.role
        existing.role = "admin"
        db.commit()
        print(f"Promoted '{email}' from {previous} to admin.")
        return True

    db.add(UserDB(
        id=str(uuid4()),
        email=email,
        username=username,
        password_hash=hash_password(password),
        role="admin",
    ))
    db.commit()
    print(f"Admin user created: {username} <{email}>")
    return True


def load_form(db: Session, path: str, created_by: str) -> bool:
    with open(path) as f:
        form = FormDefinition.from_dict(json.load(f))
    try:
        FormStore(db).create_form(form, created_by=created_by)
    except DuplicateFormError:
        print(f"Skipped '{form.name}': a form with that name exists.")
        return True
    print(f"Loaded form '{form.name}' ({len(form.sections)} sections)")
    return True


def main():
    if len(sys.argv) < 4:
        print(__doc__)
        sys.exit(1)

    email, username, password = sys.argv[1:4]
    form_paths = sys.argv[4:]

    if len(password) < 8:
        print("Error: Password must be at least 8 characters.")
        sys.exit(1)

    if "@" not in email:
        print("Error: Invalid email format.")
        sys.exit(1)

    init_db()
    db: Session = SessionLocal()
    try:
        if not create_admin_user(db, email, username, password):
            sys.exit(1)
        admin = db.query(UserDB).filter(UserDB.email == email).first()
        for path in form_paths:
            load_form(db, path, admin.id)
    except (OSError, ValueError, KeyError) as e:
        db.rollback()
        print(f"Error: {e}")
        sys.exit(1)
    finally:
        db.close()


if __name__ == "__main__":
    main()
