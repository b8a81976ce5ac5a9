import uuid


def new_id() -> str:
    """Generate a new string primary key (UUID4 text)."""
    return str(uuid.uuid4())
