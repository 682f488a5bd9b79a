from __future__ import annotations

from decimal import Decimal

from sqlalchemy import select

from backend.app.db.session import SessionLocal
from backend.app.db.models.models_v1 import User, Warehouse
from backend.app.db.models.core_types import Role


DEFAULT_WAREHOUSES = (
    # name, location, max_capacity (ft3)
    ("Main Warehouse", "Papeete", Decimal("10000")),
    ("Overflow Depot", "Faa'a", Decimal("2500")),
)


def run_seed():
    db = SessionLocal()
    try:
        # 1) Admin (l'authentification vit hors du moteur : pas de mot de passe ici)
        user = db.scalar(select(User).where(User.username == "admin"))
        if not user:
            db.add(User(username="admin", role=Role.admin, active=True))
            db.commit()

        # 2) Entrepôts de démo, capacité vide
        for name, location, max_capacity in DEFAULT_WAREHOUSES:
            wh = db.scalar(select(Warehouse).where(Warehouse.name == name))
            if not wh:
                db.add(
                    Warehouse(
                        name=name,
                        location=location,
                        max_capacity=max_capacity,
                        current_capacity=Decimal("0"),
                        capacity_alert_threshold=Decimal("80.00"),
                        active=True,
                    )
                )
        db.commit()

        print(f"SEED OK: user=admin, warehouses={len(DEFAULT_WAREHOUSES)}")
    finally:
        db.close()


if __name__ == "__main__":
    run_seed()
