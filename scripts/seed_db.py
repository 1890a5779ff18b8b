"""Create the super-admin and one demo organization with its admin account."""

from __future__ import annotations

import importlib
import os
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from dotenv import load_dotenv

from config import get_settings_module

from src.attendance_tracker.attendance_tracker.container import build_container
from src.attendance_tracker.attendance_tracker.users.service import ensure_super_admin


def main() -> None:
    load_dotenv(override=False)
    settings = importlib.import_module(get_settings_module())
    container = build_container(settings)

    email = os.getenv("SUPER_ADMIN_EMAIL") or getattr(settings, "SUPER_ADMIN_EMAIL", "") or "superadmin@example.com"
    password = os.getenv("SUPER_ADMIN_PASSWORD") or getattr(settings, "SUPER_ADMIN_PASSWORD", "") or "superadmin123"
    created = ensure_super_admin(container.users_repo, email=email, password=password)
    print(f"super-admin {email}: {'created' if created else 'already present'}")

    if container.users_repo.get_by_email("admin@demo.example.com"):
        print("demo organization already seeded")
        return

    org, admin, _ = container.user_service.register_organization(
        {"name": "Demo Office", "type": "office", "email": "office@demo.example.com"},
        {
            "first_name": "Demo",
            "last_name": "Admin",
            "email": "admin@demo.example.com",
            "employee_id": "DEMO001",
            "password": "demo12345",
            "confirm_password": "demo12345",
        },
    )
    print(f"OK: organization '{org.name}' (invite code {org.invite_code}) with admin {admin.email}")


if __name__ == "__main__":
    main()
