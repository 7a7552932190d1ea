# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of Kurral Engine.
#
# Kurral Engine is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

from kurral_core.pipeline.steps.discussion import DiscussionStep
from kurral_core.pipeline.steps.extract_claims import ExtractClaimsStep
from kurral_core.pipeline.steps.fact_check import FactCheckStep
from kurral_core.pipeline.steps.policy import PolicyStep
from kurral_core.pipeline.steps.precheck import PreCheckStep
from kurral_core.pipeline.steps.reshare import ResolveReshareStep, inherited_fields
from kurral_core.pipeline.steps.value import ValueScoringStep

__all__ = [
    "DiscussionStep",
    "ExtractClaimsStep",
    "FactCheckStep",
    "PolicyStep",
    "PreCheckStep",
    "ResolveReshareStep",
    "ValueScoringStep",
    "inherited_fields",
]
