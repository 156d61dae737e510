# src/services/ids.py
from uuid import uuid4


def new_id() -> str:
    """Opaque, collision-resistant id for recipes, cookbooks and guest identities."""
    return str(uuid4())
