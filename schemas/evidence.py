"""
Evidence records handed in by the persistence layer for correlation.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import Field

from engine.enums import EvidenceType
from schemas.base import NpModel, UtcDatetime


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Evidence(NpModel):

    id: str
    incident_id: str
    type: EvidenceType
    source: str = "unknown"
    content: Dict[str, Any] = Field(default_factory=dict)
    timestamp: UtcDatetime
    confidence: Optional[float] = None
    metadata: Optional[Dict[str, Any]] = None
    created_at: UtcDatetime = Field(default_factory=_utcnow)
