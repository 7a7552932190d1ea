# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of Kurral Engine.
#
# Kurral Engine is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

import os
from datetime import datetime, timezone


def is_local_run() -> bool:
    """
    Best-effort detection of local/dev runs without requiring extra configuration.
    Prefer emulator flags because they are already part of local setup.
    """
    if os.getenv("FIREBASE_AUTH_EMULATOR_HOST"):
        return True
    if os.getenv("FIRESTORE_EMULATOR_HOST"):
        return True

    env = (os.getenv("KURRAL_ENV") or os.getenv("ENV") or "").strip().lower()
    if env in ("local", "dev", "development"):
        return True

    return False


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_aware(value: datetime) -> datetime:
    """Treat naive datetimes (legacy documents) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
