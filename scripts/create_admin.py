"""Create an admin account (the HTTP API only registers regular users).

Usage:
    DATABASE_URL=sqlite:///imgpress.db python -m scripts.create_admin \
        --username admin --email admin@example.com --password s3cret!
"""

import argparse
import sys

from config import settings
from exceptions import ImgpressError
from security.passwords import PasswordHasher
from storage.repository import create_storage


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Create an imgpress admin user")
    parser.add_argument("--username", required=True)
    parser.add_argument("--email", required=True)
    parser.add_argument("--password", required=True)
    args = parser.parse_args(argv)

    if len(args.password) < 6:
        print("Password must be at least 6 characters long", file=sys.stderr)
        return 2

    storage = create_storage(settings.database_url)
    try:
        storage.init_schema()
        email = args.email.strip().lower()
        if storage.find_conflicting_user(args.username, email) is not None:
            print("User already exists with this email or username", file=sys.stderr)
            return 1
        user = storage.create_user(
            username=args.username.strip(),
            email=email,
            password_hash=PasswordHasher(settings.bcrypt_rounds).hash(args.password),
            role="admin",
        )
    except ImgpressError as e:
        print(e.message, file=sys.stderr)
        return 1
    finally:
        storage.close()

    print(f"Created admin user {user.username} (id={user.id})")
    return 0


if __name__ == "__main__":
    sys.exit(main())
