"""
Reasoning Service Connector

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from config import SIGNALS_REASONING_TIMEOUT
from datasources.base import BaseConnector
from datasources.exceptions import DataSourceError, InvalidQuery, ReasoningResponseError, ReasoningUnavailable
from datasources.helpers import post_json


class HttpReasoningClient(BaseConnector):
    def __init__(
        self,
        base_url: str,
        timeout: float = SIGNALS_REASONING_TIMEOUT,
        headers: Optional[Dict[str, str]] = None,
    ):
        super().__init__(base_url, timeout, headers)

    async def correlate(self, incident_id: str, windows: List[Dict[str, Any]]) -> Dict[str, Any]:
        url = f"{self.base_url}/v1/correlate"
        try:
            return await post_json(
                url,
                payload={"incident_id": incident_id, "windows": windows},
                headers=self._headers(),
                timeout=self.timeout,
                invalid_msg="Reasoning request failed",
                timeout_msg="Reasoning request timed out",
                unavailable_msg="Cannot reach reasoning service at",
            )
        except InvalidQuery as e:
            raise ReasoningResponseError(str(e)) from e
        except DataSourceError as e:
            raise ReasoningUnavailable(str(e)) from e
