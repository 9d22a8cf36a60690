import uuid

# Two-digit entity codes appended to every generated id
TYPE_POSTFIX = {
    "accounts": 10,
    "users": 11,
    "connection_requests": 14,
    "messages": 16,
}


def generate_random_id(entity: str) -> str:
    """Returns a 22-char id: 20 random hex digits + 2-digit entity postfix."""
    if entity not in TYPE_POSTFIX:
        raise ValueError(f"Unknown entity for ID generation: {entity}")
    return f"{uuid.uuid4().hex[:20]}{TYPE_POSTFIX[entity]:02d}"
