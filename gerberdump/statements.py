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
Gerber (RS-274X) Statements
===========================
**Typed, immutable Gerber command values**

The command parser turns every raw command into exactly one instance of the classes below. The set is closed: the
graphics state machine, the validator and the statistics collector dispatch on :py:attr:`Statement.name`.
"""

from dataclasses import dataclass, field, KW_ONLY
from enum import Enum

from .utils import LengthUnit, InterpMode


class OpKind(Enum):
    INTERPOLATE = 'D01'
    MOVE = 'D02'
    FLASH = 'D03'


class Polarity(Enum):
    DARK = 'D'
    CLEAR = 'C'


class AttributeScope(Enum):
    FILE = 'TF'
    APERTURE = 'TA'
    OBJECT = 'TO'


@dataclass(frozen=True, slots=True)
class Statement:
    """ Base class of all commands. """
    _ : KW_ONLY
    #: 1-based source line
    line: int = field(default=None, compare=False)
    #: Character offset into the source
    offset: int = field(default=None, compare=False)
    #: Command text as found in the file
    raw: str = field(default=None, compare=False)
    #: ``True`` for legacy syntax that the Gerber format deprecates
    deprecated: bool = False

    #: snake_case name used for dispatch
    name = 'statement'
    #: Function code or keyword as written in Gerber
    code = ''

    @property
    def kind(self):
        return type(self).__name__

    def __str__(self):
        return f'<{self.code} {self.__doc__.strip()}>'


@dataclass(frozen=True, slots=True)
class ApertureDefinition(Statement):
    """ AD aperture definition """
    name = 'aperture_definition'
    code = 'AD'
    number: int
    #: ``'C'``, ``'R'``, ``'O'``, ``'P'`` or the name of an aperture macro
    template: str
    params: tuple = ()

    def __str__(self):
        params = 'X'.join(f'{p:g}' for p in self.params)
        return f'<AD D{self.number} {self.template}{"," if params else ""}{params}>'


@dataclass(frozen=True, slots=True)
class MacroPrimitive:
    """ One primitive of an aperture macro. Modifiers are kept as unevaluated expression strings. """
    code: int
    modifiers: tuple = ()

    #: Primitive codes the Gerber format deprecates
    DEPRECATED_CODES = (2, 22, 6)

    @property
    def deprecated(self):
        return self.code in self.DEPRECATED_CODES


@dataclass(frozen=True, slots=True)
class ApertureMacro(Statement):
    """ AM aperture macro """
    name = 'aperture_macro'
    code = 'AM'
    macro_name: str
    primitives: tuple = ()
    #: :py:class:`~.aperture_macros.MacroVariable` definitions in definition order
    variables: tuple = ()
    comments: tuple = ()

    def __str__(self):
        return f'<AM {self.macro_name} with {len(self.primitives)} primitives>'


@dataclass(frozen=True, slots=True)
class GraphicsOperation(Statement):
    """ D01/D02/D03 operation """
    name = 'graphics_operation'
    #: :py:class:`OpKind`, or ``None`` for a coordinate without D code (deprecated modal D01)
    op: OpKind = None
    x: float = None
    y: float = None
    i: float = None
    j: float = None
    #: Interpolation mode given in the same command, e.g. ``G01X..Y..D01`` (deprecated combined form)
    interpolation: InterpMode = None

    @property
    def code(self):
        if self.op is None:
            return 'D01 (modal)'
        if self.interpolation is not None:
            return f'G0{self.interpolation.value + 1}{self.op.value}'
        return self.op.value

    @property
    def has_coordinates(self):
        return any(v is not None for v in (self.x, self.y, self.i, self.j))

    def __str__(self):
        coords = ' '.join(f'{axis}={getattr(self, axis)}' for axis in 'xyij' if getattr(self, axis) is not None)
        return f'<{self.code} {coords}>'


@dataclass(frozen=True, slots=True)
class ApertureSelect(Statement):
    """ Dnn aperture selection """
    name = 'aperture_select'
    number: int
    #: Deprecated ``G54``/``G55`` prefix, ``None`` if absent
    prefix: str = None

    @property
    def code(self):
        return f'{self.prefix}D' if self.prefix else 'D'

    def __str__(self):
        return f'<D{self.number} aperture selection>'


@dataclass(frozen=True, slots=True)
class InterpolationModeSet(Statement):
    """ G01/G02/G03 interpolation mode """
    name = 'interpolation_mode_set'
    mode: InterpMode

    @property
    def code(self):
        return {InterpMode.LINEAR: 'G01', InterpMode.CIRCULAR_CW: 'G02', InterpMode.CIRCULAR_CCW: 'G03'}[self.mode]


@dataclass(frozen=True, slots=True)
class QuadrantModeSet(Statement):
    """ G74/G75 quadrant mode """
    name = 'quadrant_mode_set'
    #: ``True`` for G75 multi-quadrant mode, ``False`` for G74 single-quadrant mode
    multi: bool

    @property
    def code(self):
        return 'G75' if self.multi else 'G74'


@dataclass(frozen=True, slots=True)
class RegionStart(Statement):
    """ G36 region start """
    name = 'region_start'
    code = 'G36'


@dataclass(frozen=True, slots=True)
class RegionEnd(Statement):
    """ G37 region end """
    name = 'region_end'
    code = 'G37'


@dataclass(frozen=True, slots=True)
class BlockApertureOpen(Statement):
    """ AB block aperture open """
    name = 'block_aperture_open'
    code = 'AB'
    number: int


@dataclass(frozen=True, slots=True)
class BlockApertureClose(Statement):
    """ AB block aperture close """
    name = 'block_aperture_close'
    code = 'AB'


@dataclass(frozen=True, slots=True)
class StepRepeatOpen(Statement):
    """ SR step and repeat open """
    name = 'step_repeat_open'
    code = 'SR'
    nx: int
    ny: int
    dx: float
    dy: float


@dataclass(frozen=True, slots=True)
class StepRepeatClose(Statement):
    """ SR step and repeat close """
    name = 'step_repeat_close'
    code = 'SR'


@dataclass(frozen=True, slots=True)
class Attribute(Statement):
    """ TF/TA/TO attribute """
    name = 'attribute'
    scope: AttributeScope
    attr_name: str
    values: tuple = ()

    @property
    def code(self):
        return self.scope.value

    def __str__(self):
        return f'<{self.code} {self.attr_name}={",".join(self.values)}>'


@dataclass(frozen=True, slots=True)
class AttributeDelete(Statement):
    """ TD attribute delete """
    name = 'attribute_delete'
    code = 'TD'
    #: Name of the attribute to delete, ``None`` to delete all aperture and object attributes
    attr_name: str = None


@dataclass(frozen=True, slots=True)
class FormatSpec(Statement):
    """ FS format specification """
    name = 'format_spec'
    code = 'FS'
    integer_digits: int
    decimal_digits: int
    zeros: str = 'leading'
    notation: str = 'absolute'

    def __str__(self):
        return f'<FS {self.integer_digits}.{self.decimal_digits} {self.zeros} zeros, {self.notation}>'


@dataclass(frozen=True, slots=True)
class UnitSpec(Statement):
    """ MO unit mode """
    name = 'unit_spec'
    unit: LengthUnit

    @property
    def code(self):
        if self.deprecated:
            return 'G70' if self.unit == 'inch' else 'G71'
        return 'MO'

    def __str__(self):
        return f'<{self.code} unit {self.unit}>'


@dataclass(frozen=True, slots=True)
class NotationSet(Statement):
    """ G90/G91 coordinate notation """
    name = 'notation_set'
    incremental: bool

    @property
    def code(self):
        return 'G91' if self.incremental else 'G90'


@dataclass(frozen=True, slots=True)
class PolaritySet(Statement):
    """ LP load polarity """
    name = 'polarity_set'
    code = 'LP'
    polarity: Polarity


@dataclass(frozen=True, slots=True)
class MirrorSet(Statement):
    """ LM load mirroring """
    name = 'mirror_set'
    code = 'LM'
    #: ``'N'``, ``'X'``, ``'Y'`` or ``'XY'``
    mirror: str = 'N'


@dataclass(frozen=True, slots=True)
class RotationSet(Statement):
    """ LR load rotation """
    name = 'rotation_set'
    code = 'LR'
    degrees: float = 0.0


@dataclass(frozen=True, slots=True)
class ScaleSet(Statement):
    """ LS load scaling """
    name = 'scale_set'
    code = 'LS'
    factor: float = 1.0


@dataclass(frozen=True, slots=True)
class LegacyDirective(Statement):
    """ Deprecated image or program directive (IP, IR, MI, SF, OF, IN, LN, AS, IF, M01) """
    name = 'legacy_directive'
    directive: str
    value: str = ''

    @property
    def code(self):
        return self.directive

    def __str__(self):
        return f'<{self.directive} {self.value}>'


@dataclass(frozen=True, slots=True)
class Comment(Statement):
    """ G04 comment """
    name = 'comment'
    code = 'G04'
    text: str = ''

    def __str__(self):
        return f'<G04 Comment: {self.text}>'


@dataclass(frozen=True, slots=True)
class EndOfFile(Statement):
    """ M02 end of file """
    name = 'end_of_file'

    @property
    def code(self):
        return 'M00' if self.deprecated else 'M02'
