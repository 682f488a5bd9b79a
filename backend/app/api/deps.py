from __future__ import annotations

from typing import Generator

from fastapi import Header, HTTPException

from backend.app.db.session import SessionLocal

def get_db() -> Generator:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_actor_id(actor_id: str | None = Header(default=None, alias="X-Actor-Id")) -> int:
    # L'authentification est faite en amont (gateway) : on ne reçoit qu'un id
    if not actor_id or not actor_id.strip():
        raise HTTPException(status_code=401, detail="Missing X-Actor-Id header")
    try:
        return int(actor_id.strip())
    except ValueError:
        raise HTTPException(status_code=400, detail="X-Actor-Id must be an integer")
