def ctx_prefix(*, backend: str, target: str, attempt: int | None = None) -> str:
    base = f"backend={backend} target={target}"
    return f"{base} att={attempt}" if attempt is not None else base
