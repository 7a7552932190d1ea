# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of Kurral Engine.
#
# Kurral Engine is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""Keys for PipelineContext.extras shared between steps."""

PRECHECK_KEY = "precheck"
INHERITED_KEY = "inherited"
DEFERRED_KEY = "deferred"
SKIP_FACT_CHECK_KEY = "skip_fact_check"
SOURCE_TEXT_KEY = "source_text"
REUSED_FACT_CHECKS_KEY = "reused_fact_checks"
POLICY_DECISION_KEY = "policy_decision"
FAILED_STAGES_KEY = "failed_stages"
