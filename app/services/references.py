import secrets
from datetime import datetime, timezone


def generate_reference() -> str:
    now = datetime.now(timezone.utc)
    return f"{now:%y%m%d%H%M%S}{secrets.randbelow(10**6):06d}"
