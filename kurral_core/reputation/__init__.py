# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of Kurral Engine.
#
# Kurral Engine is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

from kurral_core.reputation.ledger import (
    ContributionType,
    ReputationContribution,
    ReputationStats,
    build_contribution_key,
)

__all__ = [
    "ContributionType",
    "ReputationContribution",
    "ReputationStats",
    "build_contribution_key",
]
