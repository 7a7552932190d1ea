# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of Kurral Engine.
#
# Kurral Engine is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# Kurral Engine is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE. See the
# GNU Affero General Public License for more details.

"""
Evidence Source Registry
========================
Curated domains used to score evidence when the annotation service omits
an explicit quality value.

Categories:
- health_authorities: Public health agencies and regulators
- science_journals: Peer-reviewed publishers
- international_bodies: Economic / statistical institutions
- wire_services: News agencies with strict editorial standards
- newspapers_of_record: Major newspapers
- low_trust_social: General social platforms (user-generated, unvetted)
"""

from __future__ import annotations

from kurral_core.utils.url_utils import host_matches, host_of

TRUSTED_SOURCES: dict[str, list[str]] = {
    "health_authorities": ["who.int", "cdc.gov", "nih.gov", "fda.gov"],
    "science_journals": ["nature.com", "science.org"],
    "international_bodies": ["worldbank.org", "imf.org"],
    "wire_services": ["reuters.com", "apnews.com"],
    "newspapers_of_record": ["ft.com", "nytimes.com", "theguardian.com"],
}

LOW_TRUST_SOURCES: dict[str, list[str]] = {
    "low_trust_social": ["facebook.com", "reddit.com", "tiktok.com", "instagram.com", "telegram.org"],
}

TRUSTED_QUALITY = 0.95
GOV_EDU_QUALITY = 0.85
ORG_QUALITY = 0.7
DEFAULT_QUALITY = 0.5
UNPARSEABLE_QUALITY = 0.4
LOW_TRUST_QUALITY = 0.0


def _flatten(registry: dict[str, list[str]]) -> tuple[str, ...]:
    out: list[str] = []
    for domains in registry.values():
        for d in domains:
            if d not in out:
                out.append(d)
    return tuple(out)


TRUSTED_DOMAINS = _flatten(TRUSTED_SOURCES)
LOW_TRUST_DOMAINS = _flatten(LOW_TRUST_SOURCES)


def score_evidence_url(url: str | None) -> float:
    """
    Quality in [0, 1] for an evidence URL based on its domain.

    curated list 0.95; .gov/.edu 0.85; .org 0.7; social platforms 0;
    anything else 0.5; missing or unparseable URL 0.4.
    """
    host = host_of(url)
    if not host:
        return UNPARSEABLE_QUALITY
    if any(host_matches(host, d) for d in LOW_TRUST_DOMAINS):
        return LOW_TRUST_QUALITY
    if any(host_matches(host, d) for d in TRUSTED_DOMAINS):
        return TRUSTED_QUALITY
    if host.endswith(".gov") or host.endswith(".edu"):
        return GOV_EDU_QUALITY
    if host.endswith(".org"):
        return ORG_QUALITY
    return DEFAULT_QUALITY
