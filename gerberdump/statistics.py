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

from collections import Counter
from dataclasses import dataclass, field

from .statements import OpKind


@dataclass
class StatisticsReport:
    #: Statement class name -> number of occurrences
    command_counts: dict = field(default_factory=dict)
    #: Aperture shape name -> number of defined apertures
    aperture_counts: dict = field(default_factory=dict)
    deprecated_count: int = 0
    #: Number of resolved operations after flattening
    operation_count: int = 0
    #: ``'D01'``/``'D02'``/``'D03'`` -> number of resolved operations
    operation_counts: dict = field(default_factory=dict)
    region_count: int = 0
    block_count: int = 0
    step_repeat_count: int = 0

    @property
    def command_count(self):
        return sum(self.command_counts.values())

    def as_dict(self):
        return {
            'commands': self.command_count,
            'command_counts': dict(self.command_counts),
            'aperture_counts': dict(self.aperture_counts),
            'deprecated': self.deprecated_count,
            'operations': self.operation_count,
            'operation_counts': dict(self.operation_counts),
            'regions': self.region_count,
            'blocks': self.block_count,
            'step_repeats': self.step_repeat_count,
            }


def collect_statistics(document):
    """ Count commands, apertures and operations of a :py:class:`~.document.Document`. """
    commands = Counter(cmd.kind for cmd in document.commands)
    operations = Counter(op.kind.value for op in document.operations)

    return StatisticsReport(
            command_counts=dict(sorted(commands.items())),
            aperture_counts=dict(sorted(Counter(ap.shape for ap in document.apertures.values()).items())),
            deprecated_count=sum(1 for cmd in document.commands if cmd.deprecated),
            operation_count=len(document.operations),
            operation_counts={kind.value: operations.get(kind.value, 0) for kind in OpKind},
            region_count=commands.get('RegionStart', 0),
            block_count=len(document.block_scopes),
            step_repeat_count=len(document.step_repeat_scopes))
