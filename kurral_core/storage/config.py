# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of Kurral Engine.
#
# Kurral Engine is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class StorageConfig:
    # Collections
    content_collection: str = "posts"
    comment_collection: str = "comments"
    contribution_collection: str = "valueContributions"
    user_collection: str = "users"
    review_collection: str = "postReviews"

    # User document fields
    value_stats_field: str = "value_stats"
    trust_score_field: str = "kurral_score"

    # Query limits
    max_reshares_per_sync: int = 500
