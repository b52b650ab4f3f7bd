#!/usr/bin/env python
# -*- coding: utf-8 -*-
#
# Copyright 2025 Wyre Innovations
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
#

"""
gerberdump
==========

gerberdump is an objdump for Gerber files. It reads Gerber RS-274X and X2 files, reconstructs the graphics state at
every command, validates the file against the format rules and derives statistics and manufacturing cost metrics.
"""

from .rs274x import parse, parse_file, ParseResult
from .document import Document
from .validate import validate
from .fabrication import analyze_fabrication_cost, CostWeights, FabricationCostReport
from .statistics import collect_statistics, StatisticsReport
from .batch import discover_files, analyze_files
from .utils import MM, Inch

__version__ = '0.1.0'
