"""
Log ingestion: format detection, line normalization, error grouping and error-rate spike detection.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from engine.logs.formats import detect_format, normalize_level
from engine.logs.parser import LogParser

__all__ = ["LogParser", "detect_format", "normalize_level"]
