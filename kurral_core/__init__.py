# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of Kurral Engine.
#
# Kurral Engine is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""
Kurral Core Engine
==================

Content trust pipeline: claims, verdicts, value scores, moderation status
and the author trust score ("Kurral Score") derived from them.
"""

__version__ = "0.4.0"

# Versioning for stored annotations (reproducibility of scores).
# When changing prompts/strategy, bump these strings.
PROMPT_VERSION = "kurral_agents_v2"
SCORING_VERSION = "kurral_score_v1"
