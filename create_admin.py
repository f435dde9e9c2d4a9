"""
Script to create the first admin user
Run this script after recreate_db.py

Usage:
    python create_admin.py

Environment Variables (optional):
    ADMIN_EMAIL - Admin email address
    ADMIN_PASSWORD - Admin password (min 6 characters)
    ADMIN_NAME - Admin name
    ADMIN_ROLE - Admin role (super_admin, admin, manager, support)
"""
import sys
from sqlalchemy.exc import OperationalError, ProgrammingError
from app.database import SessionLocal
from app.models.admin import Admin, AdminRole
from app.utils.security import get_password_hash
from app.config import settings


def _prompt(label: str, current: str) -> str:
    return current or input(f"Enter admin {label}: ").strip()


def create_admin():
    """Create an admin from env settings, prompting for anything missing"""
    db = SessionLocal()

    try:
        try:
            existing_count = db.query(Admin).count()
        except (OperationalError, ProgrammingError):
            print("[ERROR] Admin table does not exist!")
            print("   Run: python recreate_db.py")
            return

        email = _prompt("email", settings.ADMIN_EMAIL.strip()).lower()
        if not email:
            print("[ERROR] Email is required!")
            return
        if db.query(Admin).filter(Admin.email == email).first():
            print(f"[ERROR] Admin with email {email} already exists!")
            return

        password = _prompt("password (min 6 characters)", settings.ADMIN_PASSWORD.strip())
        if len(password) < 6:
            print("[ERROR] Password must be at least 6 characters!")
            return

        name = _prompt("name", settings.ADMIN_NAME.strip())
        try:
            role = AdminRole(settings.ADMIN_ROLE.strip().lower())
        except ValueError:
            print(f"[ERROR] Unknown role '{settings.ADMIN_ROLE}'. Use one of: {[r.value for r in AdminRole]}")
            return

        admin = Admin(
            email=email,
            password_hash=get_password_hash(password),
            name=name or "Admin",
            role=role,
            is_active=True
        )
        db.add(admin)
        db.commit()
        db.refresh(admin)

        print("=" * 50)
        print("[SUCCESS] Admin user created successfully!")
        print(f"   Email: {admin.email}")
        print(f"   Role: {admin.role.value}")
        print(f"   ID: {admin.id}")
        if existing_count:
            print(f"   ({existing_count} other admin(s) already exist)")
        print("[TIP] Login at: POST /admin/auth/login")
        print("=" * 50)

    except Exception as e:
        db.rollback()
        print(f"[ERROR] Error creating admin: {e}")
        sys.exit(1)
    finally:
        db.close()


if __name__ == "__main__":
    create_admin()
