"""Root conftest: loads .env.test before any module imports."""
from __future__ import annotations

import os
from pathlib import Path

_DEFAULTS = {
    "STORE_BACKEND": "memory",
    "FANOUT_BACKEND": "local",
    "JWT_SECRET": "test-secret-key-for-market-chat-0123456789",
}

_env_test = Path(__file__).resolve().parent / ".env.test"
if _env_test.exists():
    for line in _env_test.read_text().splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        key, _, value = line.partition("=")
        os.environ.setdefault(key.strip(), value.strip())

for key, value in _DEFAULTS.items():
    os.environ.setdefault(key, value)
