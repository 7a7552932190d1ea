# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of Kurral Engine.
#
# Kurral Engine is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""
Kurral CLI Module

Commands:
- pipeline run <item.json> [--comments comments.json]: Run the trust pipeline
- policy eval <claims.json>: Evaluate the moderation policy

Usage:
    python -m kurral_cli pipeline run post.json --comments comments.json
    python -m kurral_cli policy eval claims.json
"""

from kurral_cli.pipeline_cmd import main

__all__ = ["main"]
