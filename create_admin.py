# create_admin.py
"""
Create an admin account out of band.

Sign-up through the app always yields role "user"; this script is the
way to bootstrap the first admin (later admins can be promoted with
PATCH /users/{id}/role).

Run:
    python create_admin.py
"""

import uuid
from getpass import getpass

from pydantic import EmailStr, TypeAdapter, ValidationError

from app.core.supabase_client import supabase_admin
from app.database import create_db_and_tables, session_scope
from app.repositories.user_repo import UserRepository
from app.services.user_service import UserService, check_password_strength

_email_adapter = TypeAdapter(EmailStr)


def create_admin(email: str, password: str) -> uuid.UUID:
    """
    Create the Supabase Auth account, then the admin profile row.

    Raises:
        ValueError: invalid email or weak password.
    """
    try:
        email = _email_adapter.validate_python(email)
    except ValidationError:
        raise ValueError("Invalid email format")

    problem = check_password_strength(password)
    if problem:
        raise ValueError(problem)

    response = supabase_admin().auth.admin.create_user(
        {"email": email, "password": password, "email_confirm": True}
    )
    user_id = uuid.UUID(str(response.user.id))

    create_db_and_tables()
    with session_scope() as session:
        UserService(UserRepository()).provision_admin(session, user_id, email)

    return user_id


def main():
    email = input("Admin email: ").strip()
    password = getpass("Admin password (min 8 chars, upper, lower, digit): ")

    print("\nCreating admin user...")
    try:
        user_id = create_admin(email, password)
    except ValueError as e:
        print(f"Error: {e}")
        raise SystemExit(1)

    print("Admin user created.")
    print(f"  Email: {email}")
    print(f"  UID:   {user_id}")
    print("  Role:  admin")


if __name__ == "__main__":
    main()
