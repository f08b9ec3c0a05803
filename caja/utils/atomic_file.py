from __future__ import annotations

import json
import os
from typing import Iterator

__all__ = ["append_jsonl_atomic", "iter_jsonl"]


def append_jsonl_atomic(path: str, obj, ensure_ascii: bool = False) -> None:
    """
    Anexa una línea JSON (JSONL). Para append usamos flush+fsync para minimizar riesgo
    de cortes, pero no se reescribe el archivo completo.
    """
    d = os.path.dirname(path) or "."
    os.makedirs(d, exist_ok=True)
    line = json.dumps(obj, ensure_ascii=ensure_ascii)
    with open(path, "a", encoding="utf-8", newline="\n") as f:
        f.write(line + "\n")
        f.flush()
        os.fsync(f.fileno())


def iter_jsonl(path: str) -> Iterator[dict]:
    """Recorre un JSONL saltando líneas corruptas (p. ej. una escritura cortada)."""
    if not os.path.exists(path):
        return
    with open(path, encoding="utf-8") as f:
        for ln in f:
            ln = ln.strip()
            if not ln:
                continue
            try:
                yield json.loads(ln)
            except ValueError:
                continue
