"""
Script to recreate the database and seed the courier integrations

Usage:
    python recreate_db.py            # create missing tables, seed couriers and settings
    python recreate_db.py --reset    # drop every table first
"""
import sys
from app.database import Base, SessionLocal, engine
from app.models import Courier, Setting
from app.models.courier import CourierType
from app.services.settings_service import AUTO_CREATE_COURIER_ORDER, DEFAULT_COURIER_ID

DEFAULT_COURIERS = [
    {
        "name": "Pathao",
        "code": "pathao",
        "description": "Pathao Courier merchant API",
        "courier_type": CourierType.EXTERNAL.value,
    },
    {
        "name": "Steadfast",
        "code": "steadfast",
        "description": "Steadfast Courier (Packzy) API",
        "courier_type": CourierType.EXTERNAL.value,
    },
    {
        "name": "Internal Delivery",
        "code": "internal",
        "description": "Own delivery fleet; orders are completed with a customer OTP",
        "courier_type": CourierType.INTERNAL.value,
    },
]

DEFAULT_SETTINGS = {
    AUTO_CREATE_COURIER_ORDER: True,
    DEFAULT_COURIER_ID: None,
}


def seed(db) -> None:
    for data in DEFAULT_COURIERS:
        if db.query(Courier).filter(Courier.code == data["code"]).first():
            print(f"Courier '{data['code']}' already exists")
            continue
        db.add(Courier(**data))
        print(f"Added courier '{data['code']}'")

    for key, value in DEFAULT_SETTINGS.items():
        if not db.query(Setting).filter(Setting.key == key).first():
            db.add(Setting(key=key, value=value))
            print(f"Added setting '{key}' = {value!r}")

    db.commit()


if __name__ == "__main__":
    if "--reset" in sys.argv:
        print("Dropping all tables...")
        Base.metadata.drop_all(bind=engine)

    print("Creating database tables...")
    Base.metadata.create_all(bind=engine)
    print(f"Tables: {', '.join(sorted(Base.metadata.tables))}")

    db = SessionLocal()
    try:
        seed(db)
    except Exception as e:
        db.rollback()
        print(f"[ERROR] Seeding failed: {e}")
        sys.exit(1)
    finally:
        db.close()
    print("Database ready!")
