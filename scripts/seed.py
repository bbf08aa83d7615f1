#!/usr/bin/env python3
import argparse
import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from pitchperfect.backend.seed import seed_admin, seed_reference_data  # noqa: E402
from pitchperfect.backend.storage import build_store  # noqa: E402


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed industries, skills, learning modules and an admin user.")
    parser.add_argument("--skip-admin", action="store_true", help="Only seed reference data.")
    parser.add_argument(
        "--admin-email",
        default=os.getenv("SEED_ADMIN_EMAIL", "admin@pitchperfect.ai").strip(),
        help="Email of the admin account to create or promote.",
    )
    args = parser.parse_args()

    store = build_store()
    if store.storage_name == "memory":
        print("DATABASE_URL is not set; seeding the in-memory store only (nothing will persist).")

    counts = seed_reference_data(store)
    print(
        f"Seeded {counts['industries']} industries, {counts['skills']} skills, "
        f"{counts['learning_modules']} learning modules."
    )

    if args.skip_admin:
        return

    password = os.getenv("SEED_ADMIN_PASSWORD", "").strip()
    if not password:
        raise RuntimeError("SEED_ADMIN_PASSWORD is not set. Export it or pass --skip-admin.")

    admin = seed_admin(store, args.admin_email, password)
    print(f"Admin ready: {admin.email} (role={admin.role}). Change the password after first login.")


if __name__ == "__main__":
    main()
