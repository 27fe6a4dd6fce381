# copyfactory/utils/ids.py
import secrets
import string
import uuid

_ALPHANUMERIC = string.ascii_letters + string.digits


def make_listener_id(prefix: str = "listener") -> str:
    """Process-unique id for a listener registration."""
    return f"{prefix}-{uuid.uuid4().hex[:16]}"


def random_id(length: int) -> str:
    return "".join(secrets.choice(_ALPHANUMERIC) for _ in range(length))
