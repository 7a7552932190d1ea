# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of Kurral Engine.
#
# Kurral Engine is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""
URL Utilities

Small helpers shared by the fact checker. These functions must be side-effect free.
"""

from __future__ import annotations

from urllib.parse import urlparse


def normalize_host(host: str) -> str:
    host = (host or "").strip().lower().rstrip(".")
    return host[4:] if host.startswith("www.") else host


def host_of(url: str | None) -> str | None:
    """Return the normalized host of an http(s) URL, or None if unparseable."""
    if not url:
        return None
    try:
        u = urlparse(str(url).strip())
    except ValueError:
        return None
    if u.scheme not in ("http", "https"):
        return None
    host = normalize_host(u.hostname or "")
    return host or None


def host_matches(host: str, domain: str) -> bool:
    """Exact host or any subdomain of `domain`."""
    domain = normalize_host(domain)
    return host == domain or host.endswith("." + domain)

