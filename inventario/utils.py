from __future__ import annotations

import os
import secrets
from typing import Callable


class SkuGenerationError(RuntimeError):
    pass


def get_session_secret() -> str:
    """Obtiene el secret key para sesiones. Genera uno seguro si no está definido."""
    secret = os.getenv("SESSION_SECRET", "").strip()
    if not secret:
        secret = secrets.token_hex(32)
    return secret


def generate_sku(
    exists: Callable[[str], bool],
    prefix: str = "SKU",
    width: int = 6,
    start: int = 1,
    max_attempts: int = 20,
) -> str:
    """Primer código ``{prefix}{n:0width}`` libre desde ``start``.

    ``exists`` decide la unicidad; se prueban como mucho ``max_attempts``
    candidatos consecutivos.
    """
    n = max(int(start), 1)
    for _ in range(max(int(max_attempts), 1)):
        candidate = f"{prefix}{str(n).zfill(width)}"
        if not exists(candidate):
            return candidate
        n += 1
    raise SkuGenerationError(f"No free SKU after {max_attempts} attempts from {prefix}{start}")
