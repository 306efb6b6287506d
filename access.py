"""
Role checks used by the agreement endpoints.

No token is verified anywhere in the API; the admin decision is a
dependency so a claims-based check can be swapped in with
app.dependency_overrides[get_admin_check].
"""
from typing import Callable

from pymongo.database import Database

from database import get_document

AdminCheck = Callable[[Database, str], bool]


def stored_role_is_admin(db: Database, email: str) -> bool:
    user = get_document(db, "users", {"email": email})
    return bool(user) and user.get("role") == "admin"


def get_admin_check() -> AdminCheck:
    return stored_role_is_admin
