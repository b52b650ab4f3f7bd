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
Document model
==============

A :py:class:`Document` is the structural capture of one Gerber file: every parsed command, the aperture and macro
dictionaries, attributes, and an arena of :py:class:`Scope` objects holding the operations of the file body, of every
block aperture and of every step-and-repeat block. Child scopes are referenced by integer id, never by object
reference.

After parsing, :py:meth:`Document.finalize` flattens the scope tree into :py:attr:`Document.operations`, expanding
step-and-repeat blocks and block aperture flashes, and freezes the document.
"""

import math
from dataclasses import dataclass, field, replace
from enum import Enum

from .cam import FileSettings
from .statements import OpKind, Polarity, AttributeScope
from .utils import InterpMode, MM
from .apertures import BlockAperture


ROOT_SCOPE = 0


class ScopeKind(Enum):
    ROOT = 'root'
    BLOCK = 'block'
    STEP_REPEAT = 'step_repeat'


@dataclass(frozen=True, slots=True)
class Transform:
    """ Aperture transformation in effect for an operation, as set by ``LM``, ``LR`` and ``LS``. """
    mirror: str = 'N'
    #: Counter-clockwise rotation in degrees
    rotation: float = 0.0
    scale: float = 1.0

    @property
    def is_identity(self):
        return self.mirror == 'N' and self.rotation == 0 and self.scale == 1


IDENTITY = Transform()


@dataclass(frozen=True, slots=True)
class ResolvedOperation:
    """ One graphics operation with all coordinates resolved to absolute values in file units. """
    kind: OpKind
    x: float
    y: float
    #: Current point before this operation, ``None`` if it was undefined
    start: tuple = None
    #: Arc center offset relative to ``start``, only meaningful for circular interpolations
    i: float = None
    j: float = None
    interpolation: InterpMode = None
    #: Quadrant mode of interpolations. ``False`` for G74 single-quadrant mode, where ``i`` and ``j`` are unsigned.
    multi_quadrant: bool = None
    #: :py:class:`~.apertures.Aperture` in effect, ``None`` for region contours
    aperture: object = None
    polarity: Polarity = Polarity.DARK
    #: Running number of the enclosing ``G36``/``G37`` region, ``None`` outside of regions
    region: int = None
    transform: Transform = IDENTITY
    #: Object attributes (``TO``) in effect, as tuple of ``(name, values)`` pairs
    attrs: tuple = ()
    source_line: int = None

    @property
    def is_arc(self):
        return self.kind == OpKind.INTERPOLATE and self.interpolation in (InterpMode.CIRCULAR_CW,
                                                                          InterpMode.CIRCULAR_CCW)

    @property
    def center(self):
        """ Absolute arc center point, ``None`` for anything but arcs.

        In single-quadrant mode the signs of ``i`` and ``j`` are implicit. Of the four candidate centers, the one giving
        an arc of at most 90 degrees in the direction of travel with the best matching start and end radii is used.
        Without a quadrant mode statement, ``i`` and ``j`` are taken as signed offsets.
        """
        if not self.is_arc or self.start is None:
            return None

        sx, sy = self.start
        i, j = self.i or 0, self.j or 0
        if self.multi_quadrant is not False:
            return sx + i, sy + j

        clockwise = self.interpolation == InterpMode.CIRCULAR_CW

        def error(center):
            cx, cy = center
            a1, a2 = math.atan2(sy-cy, sx-cx), math.atan2(self.y-cy, self.x-cx)
            sweep = (a1 - a2) if clockwise else (a2 - a1)
            sweep %= 2*math.pi
            radius_error = abs(math.dist(self.start, center) - math.dist((self.x, self.y), center))
            return (sweep > math.pi/2 + 1e-6, radius_error)

        candidates = [(sx + si*abs(i), sy + sj*abs(j)) for si in (1, -1) for sj in (1, -1)]
        return min(candidates, key=error)

    def offset(self, dx, dy):
        if dx == 0 and dy == 0:
            return self
        start = (self.start[0] + dx, self.start[1] + dy) if self.start is not None else None
        return replace(self, x=self.x + dx, y=self.y + dy, start=start)


@dataclass(frozen=True, slots=True)
class ScopeRef:
    """ Placeholder inside a scope's body marking where a step-and-repeat child scope was opened. """
    scope: int


@dataclass
class Scope:
    """ One node of the scope arena. """
    id: int
    kind: ScopeKind
    #: Id of the enclosing scope, ``None`` for the root
    parent: int = None
    #: D code of a block aperture
    number: int = None
    nx: int = 1
    ny: int = 1
    dx: float = 0.0
    dy: float = 0.0
    #: :py:class:`ResolvedOperation` and :py:class:`ScopeRef` entries in source order
    entries: list = field(default_factory=list)
    line: int = None
    #: Set when a block aperture references itself or an enclosing block
    cyclic: bool = False
    #: Set on step-and-repeat blocks with invalid repeat counts. These expand to nothing.
    invalid: bool = False
    closed: bool = False

    @property
    def placements(self):
        """ Offsets at which this scope's body is placed. ``(0, 0)`` only for anything but step-and-repeat. """
        if self.kind != ScopeKind.STEP_REPEAT:
            return [(0, 0)]
        if self.invalid:
            return []
        return [(i*self.dx, j*self.dy) for i in range(self.nx) for j in range(self.ny)]

    @property
    def operations(self):
        return [e for e in self.entries if isinstance(e, ResolvedOperation)]

    def __str__(self):
        if self.kind == ScopeKind.BLOCK:
            return f'<block D{self.number} {len(self.entries)} entries>'
        elif self.kind == ScopeKind.STEP_REPEAT:
            return f'<step-repeat {self.nx}x{self.ny} step {self.dx:g},{self.dy:g} {len(self.entries)} entries>'
        return f'<root {len(self.entries)} entries>'


@dataclass
class Document:
    """ Structural capture of one Gerber file. """
    filename: str = None
    #: :py:class:`~.cam.FileSettings` as declared by the file
    settings: FileSettings = field(default_factory=FileSettings)
    #: Every successfully parsed :py:class:`~.statements.Statement`, in source order
    commands: list = field(default_factory=list)
    #: D code -> :py:class:`~.apertures.Aperture`, in definition order. Redefinitions replace earlier definitions.
    apertures: dict = field(default_factory=dict)
    #: Macro name -> :py:class:`~.statements.ApertureMacro`
    macros: dict = field(default_factory=dict)
    #: ``(AttributeScope, name)`` -> tuple of values, last write wins
    attributes: dict = field(default_factory=dict)
    #: Scope arena, indexed by scope id. Index 0 is the root scope.
    scopes: list = field(default_factory=lambda: [Scope(ROOT_SCOPE, ScopeKind.ROOT)])
    #: Flattened :py:class:`ResolvedOperation` sequence, filled in by :py:meth:`finalize`
    operations: tuple = ()
    eof_found: bool = False
    frozen: bool = False

    @property
    def unit(self):
        return self.settings.unit

    @property
    def root(self):
        return self.scopes[ROOT_SCOPE]

    @property
    def file_attributes(self):
        return {name: values for (scope, name), values in self.attributes.items() if scope == AttributeScope.FILE}

    @property
    def file_function(self):
        """ Value of the ``.FileFunction`` file attribute as comma-joined string, ``None`` if not set. """
        if (values := self.attributes.get((AttributeScope.FILE, '.FileFunction'))) is None:
            return None
        return ','.join(values)

    @property
    def block_scopes(self):
        return [s for s in self.scopes if s.kind == ScopeKind.BLOCK]

    @property
    def step_repeat_scopes(self):
        return [s for s in self.scopes if s.kind == ScopeKind.STEP_REPEAT]

    def new_scope(self, kind, parent, **kwargs):
        """ Append a new :py:class:`Scope` to the arena and return its id. Step-and-repeat scopes are referenced from
        their parent's body at the current position. """
        if self.frozen:
            raise ValueError('Document is frozen')

        scope = Scope(len(self.scopes), kind, parent, **kwargs)
        self.scopes.append(scope)
        if kind == ScopeKind.STEP_REPEAT:
            self.scopes[parent].entries.append(ScopeRef(scope.id))
        return scope.id

    def add_operation(self, scope_id, op):
        if self.frozen:
            raise ValueError('Document is frozen')
        self.scopes[scope_id].entries.append(op)

    def finalize(self):
        """ Flatten the scope tree into :py:attr:`operations` and freeze this document. Idempotent. """
        if self.frozen:
            return self

        out = []
        self._flatten(ROOT_SCOPE, 0, 0, set(), out)
        self.operations = tuple(out)
        self.commands = tuple(self.commands)
        for scope in self.scopes:
            scope.entries = tuple(scope.entries)
        self.scopes = tuple(self.scopes)
        self.frozen = True
        return self

    def _flatten(self, scope_id, dx, dy, visiting, out):
        if scope_id in visiting:
            return
        visiting.add(scope_id)

        for entry in self.scopes[scope_id].entries:
            if isinstance(entry, ScopeRef):
                for sx, sy in self.scopes[entry.scope].placements:
                    self._flatten(entry.scope, dx+sx, dy+sy, visiting, out)

            elif entry.kind == OpKind.FLASH and isinstance(entry.aperture, BlockAperture):
                block = self.scopes[entry.aperture.scope]
                if not block.cyclic:
                    self._flatten(block.id, dx+entry.x, dy+entry.y, visiting, out)

            else:
                out.append(entry.offset(dx, dy))

        visiting.remove(scope_id)

    def operations_of(self, kind):
        return [op for op in self.operations if op.kind == kind]

    def bounds(self, unit=MM):
        """ Bounding box of all resolved coordinates, in the given unit. ``None`` if the document has no operations. """
        xs, ys = [], []
        for op in self.operations:
            xs.append(op.x)
            ys.append(op.y)
            if op.start is not None and op.kind == OpKind.INTERPOLATE:
                xs.append(op.start[0])
                ys.append(op.start[1])

        if not xs:
            return None

        conv = lambda v: unit(v, self.unit)
        return (conv(min(xs)), conv(min(ys))), (conv(max(xs)), conv(max(ys)))

    def __str__(self):
        name = f' {self.filename}' if self.filename else ''
        return f'<Gerber document{name}: {len(self.commands)} commands, {len(self.apertures)} apertures, '\
               f'{len(self.operations)} operations>'
