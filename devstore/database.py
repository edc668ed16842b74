import uuid
from datetime import datetime, timezone
from typing import Any, Dict

# This file holds the in-memory tables and auth sessions of the development store.

TABLES: Dict[str, Dict[int, Dict[str, Any]]] = {"products": {}, "categories": {}}
USERS: Dict[str, Dict[str, Any]] = {}
SESSIONS: Dict[str, str] = {}  # access token -> email
_SEQUENCES: Dict[str, int] = {}

DEMO_EMAIL = "productmgt@gmail.com"
DEMO_PASSWORD = "test123"


def next_id(table: str) -> int:
    _SEQUENCES[table] = _SEQUENCES.get(table, 0) + 1
    return _SEQUENCES[table]


def now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


def add_user(email: str, password: str) -> Dict[str, Any]:
    USERS[email] = {"id": uuid.uuid4().hex, "email": email, "password": password}
    return USERS[email]


def reset():
    for rows in TABLES.values():
        rows.clear()
    USERS.clear()
    SESSIONS.clear()
    _SEQUENCES.clear()
    add_user(DEMO_EMAIL, DEMO_PASSWORD)


reset()
