# Copyright (c) 2025 - 2026, HaiyangLi <quantocean.li at gmail dot com>
# SPDX-License-Identifier: Apache-2.0

from .multipart import (
    CombinedResponse,
    ResponseFormat,
    combine_results,
    negotiate_content_type,
    rejection,
)
from .parser import SubrequestSpec, parse_blueprint

__all__ = (
    "CombinedResponse",
    "ResponseFormat",
    "SubrequestSpec",
    "combine_results",
    "negotiate_content_type",
    "parse_blueprint",
    "rejection",
)
