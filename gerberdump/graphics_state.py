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

from dataclasses import dataclass, field

from .cam import FileSettings
from .utils import InterpMode, GerberFormatWarning
from .errors import (DuplicateDeclaration, UndefinedAperture, NoApertureSelected, InvalidInRegion,
                     CyclicBlockReference, InvalidRepeatCount, NestedStepRepeat, UnbalancedDelimiter)
from .statements import OpKind, Polarity, AttributeScope
from .apertures import BlockAperture, aperture_from_definition
from .document import Document, ScopeKind, ResolvedOperation, Transform, ROOT_SCOPE


@dataclass
class GraphicsState:
    """ The Gerber graphics state at one point in the command stream. Owned and mutated only by
    :py:class:`GerberInterpreter`. """
    #: Coordinate format, unit and notation
    file_settings: FileSettings = field(default_factory=FileSettings)
    #: Currently selected :py:class:`~.apertures.Aperture`
    active_aperture: object = None
    interpolation_mode: InterpMode = None
    #: ``True`` after ``G75`` (multi-quadrant), ``False`` after ``G74`` (single-quadrant), ``None`` if neither was seen
    multi_quadrant: bool = None
    region_mode: bool = False
    polarity: Polarity = Polarity.DARK
    mirror: str = 'N'
    rotation: float = 0.0
    scale: float = 1.0
    #: ``(x, y)`` in file units. Either axis is ``None`` until the first coordinate on that axis.
    current_point: tuple = (None, None)
    aperture_attrs: dict = field(default_factory=dict)
    object_attrs: dict = field(default_factory=dict)

    @property
    def coordinate_format(self):
        return self.file_settings.number_format

    @property
    def units(self):
        return self.file_settings.unit

    @property
    def transform(self):
        return Transform(self.mirror, self.rotation, self.scale)


class GerberInterpreter:
    """ Graphics state machine. Folds the parsed command sequence into a :py:class:`~.document.Document`, one
    command at a time via :py:meth:`apply`.

    State errors are raised as :py:class:`~.errors.SemanticError` *after* everything that can still be applied has
    been applied, so that the caller can record them and continue with the next command. Recoverable oddities are
    reported through the ``warn`` callback.
    """

    def __init__(self, filename=None, warn=None):
        self.state = GraphicsState()
        self.document = Document(filename=filename, settings=self.state.file_settings)
        self.warn = warn or (lambda kind, msg, kls=GerberFormatWarning, line=None: None)
        self.scope_stack = [ROOT_SCOPE]
        #: ``(aperture number, scope id)`` of all currently open block apertures, outermost first
        self.open_blocks = []
        self.step_repeat_scope = None
        self.region_count = 0
        self.format_spec = None
        self.unit_spec = None
        self.last_op = None
        #: D code of the last failed aperture selection
        self.invalid_selection = None
        self._warned = set()
        self._deprecated_seen = set()

    def warn_once(self, kind, msg, kls=GerberFormatWarning):
        if kind not in self._warned:
            self._warned.add(kind)
            self.warn(kind, msg, kls)

    @property
    def current_scope(self):
        return self.scope_stack[-1]

    @property
    def document_scope(self):
        return self.document.scopes[self.current_scope]

    def apply(self, cmd):
        """ Apply one :py:class:`~.statements.Statement` to the graphics state. The command is recorded in the document
        even if applying it fails. """
        self.document.commands.append(cmd)

        if self.document.eof_found:
            self.warn_once('DataAfterEndOfFile', 'Data found in gerber file after M02 end of file marker.')

        if cmd.deprecated and cmd.code not in self._deprecated_seen:
            self._deprecated_seen.add(cmd.code)
            self.warn('DeprecatedStatement', f'Deprecated {cmd.code} statement.', DeprecationWarning)

        getattr(self, f'_apply_{cmd.name}')(cmd)

    def finish(self, check_eof=True):
        """ Close everything still open, freeze and return the document. """
        if self.state.region_mode:
            self.warn('UnclosedRegion', 'File ends inside a G36 region statement.')
            self.state.region_mode = False

        while len(self.scope_stack) > 1:
            scope = self.document_scope
            self.warn('UnclosedScope', f'File ends inside {scope}, closing it.')
            self._close_scope()

        if check_eof and not self.document.eof_found:
            self.warn('MissingEndOfFile', 'File is missing mandatory M02 EOF marker. File may be truncated.')

        return self.document.finalize()

    def _close_scope(self):
        scope_id = self.scope_stack.pop()
        scope = self.document.scopes[scope_id]
        scope.closed = True
        if scope.kind == ScopeKind.BLOCK:
            self.open_blocks.pop()
        elif scope.kind == ScopeKind.STEP_REPEAT:
            self.step_repeat_scope = None
        return scope

    def _resolve_point(self, cmd):
        cx, cy = self.state.current_point

        if self.state.file_settings.is_incremental:
            x = (cx or 0) + (cmd.x or 0)
            y = (cy or 0) + (cmd.y or 0)

        else:
            x = cmd.x if cmd.x is not None else cx
            y = cmd.y if cmd.y is not None else cy

        if x is None or y is None:
            self.warn('MissingCoordinate', 'Coordinate omits an axis and no previous value is known. Assuming 0.')
            x = 0.0 if x is None else x
            y = 0.0 if y is None else y

        return x, y

    def _record(self, kind, x, y, start, cmd, **kwargs):
        state = self.state
        op = ResolvedOperation(kind, x, y, start,
                               polarity=state.polarity,
                               region=self.region_count if state.region_mode else None,
                               transform=state.transform,
                               attrs=tuple(state.object_attrs.items()),
                               source_line=cmd.line,
                               **kwargs)
        self.document.add_operation(self.current_scope, op)
        return op

    def _check_aperture(self, what):
        if self.state.active_aperture is not None:
            return True

        if self.invalid_selection is None:
            raise NoApertureSelected(f'{what} without a selected aperture')

        # The failed selection has already been reported
        return False

    def _apply_graphics_operation(self, cmd):
        state = self.state

        if cmd.interpolation is not None:
            state.interpolation_mode = cmd.interpolation

        if (op := cmd.op) is None:
            # Deprecated modal coordinate data repeats the previous D code
            op = self.last_op or OpKind.INTERPOLATE
        self.last_op = op

        start = state.current_point
        x, y = self._resolve_point(cmd)
        state.current_point = (x, y)
        if None in start:
            start = None

        if op == OpKind.MOVE:
            self._record(op, x, y, start, cmd, aperture=state.active_aperture)

        elif op == OpKind.FLASH:
            if state.region_mode:
                raise InvalidInRegion('Flash (D03) inside a G36/G37 region statement')

            if self._check_aperture('Flash'):
                self._record(op, x, y, start, cmd, aperture=state.active_aperture)

        else:
            if state.interpolation_mode is None:
                self.warn_once('MissingInterpolationMode', 'D01 without preceding G01/G02/G03. Assuming linear '\
                        'interpolation.')
                state.interpolation_mode = InterpMode.LINEAR

            if state.interpolation_mode != InterpMode.LINEAR and state.multi_quadrant is None:
                self.warn_once('MissingQuadrantMode', 'Circular arc interpolation without explicit G74/G75 '\
                        'quadrant mode statement. Assuming G75 multi-quadrant mode.')

            i = cmd.i if cmd.i is not None else 0.0
            j = cmd.j if cmd.j is not None else 0.0

            arc = dict(i=i, j=j, interpolation=state.interpolation_mode, multi_quadrant=state.multi_quadrant)
            if state.region_mode:
                self._record(op, x, y, start, cmd, **arc)

            elif self._check_aperture('Interpolation'):
                self._record(op, x, y, start, cmd, aperture=state.active_aperture, **arc)

    def _apply_aperture_select(self, cmd):
        for number, scope_id in self.open_blocks:
            if number == cmd.number:
                self.state.active_aperture = self.document.apertures[number]
                self.invalid_selection = None
                self.document.scopes[scope_id].cyclic = True
                raise CyclicBlockReference(number)

        if (aperture := self.document.apertures.get(cmd.number)) is None:
            self.state.active_aperture = None
            self.invalid_selection = cmd.number
            raise UndefinedAperture(cmd.number)

        self.state.active_aperture = aperture
        self.invalid_selection = None

    def _apply_aperture_definition(self, cmd):
        if cmd.number in self.document.apertures:
            self.warn('ApertureRedefinition', f'Aperture D{cmd.number} redefined. The new definition replaces the '\
                    'old one.')

        self.document.apertures[cmd.number] = aperture_from_definition(cmd,
                unit=self.state.file_settings.unit,
                macros=self.document.macros,
                attrs=self.state.aperture_attrs.items())

    def _apply_aperture_macro(self, cmd):
        if cmd.macro_name in self.document.macros:
            self.warn('MacroRedefinition', f'Aperture macro {cmd.macro_name} redefined.')
        self.document.macros[cmd.macro_name] = cmd

    def _apply_interpolation_mode_set(self, cmd):
        self.state.interpolation_mode = cmd.mode

    def _apply_quadrant_mode_set(self, cmd):
        self.state.multi_quadrant = cmd.multi

    def _apply_region_start(self, cmd):
        if self.state.region_mode:
            raise UnbalancedDelimiter('G36 region start inside a region statement')
        self.state.region_mode = True
        self.region_count += 1

    def _apply_region_end(self, cmd):
        if not self.state.region_mode:
            raise UnbalancedDelimiter('G37 region end without matching G36')
        self.state.region_mode = False

    def _apply_block_aperture_open(self, cmd):
        if cmd.number in self.document.apertures:
            self.warn('ApertureRedefinition', f'Aperture D{cmd.number} redefined by block aperture.')

        scope_id = self.document.new_scope(ScopeKind.BLOCK, self.current_scope, number=cmd.number, line=cmd.line)
        self.document.apertures[cmd.number] = BlockAperture(number=cmd.number,
                unit=self.state.file_settings.unit,
                attrs=tuple(self.state.aperture_attrs.items()),
                line=cmd.line,
                scope=scope_id)
        self.scope_stack.append(scope_id)
        self.open_blocks.append((cmd.number, scope_id))

    def _apply_block_aperture_close(self, cmd):
        if not self.open_blocks:
            raise UnbalancedDelimiter('AB block aperture close without matching AB open')

        while self.document_scope.kind != ScopeKind.BLOCK:
            self.warn('UnclosedScope', f'Implicitly closing {self.document_scope} at end of enclosing block aperture.')
            self._close_scope()
        self._close_scope()

    def _apply_step_repeat_open(self, cmd):
        nested = self.step_repeat_scope is not None
        if nested:
            # Legacy files start a new SR without closing the previous one
            while self.document_scope.kind != ScopeKind.STEP_REPEAT:
                self._close_scope()
            self._close_scope()

        invalid = cmd.nx < 1 or cmd.ny < 1
        scope_id = self.document.new_scope(ScopeKind.STEP_REPEAT, self.current_scope,
                nx=cmd.nx, ny=cmd.ny, dx=cmd.dx, dy=cmd.dy, line=cmd.line, invalid=invalid)
        self.scope_stack.append(scope_id)
        self.step_repeat_scope = scope_id

        if invalid:
            raise InvalidRepeatCount(cmd.nx, cmd.ny)

        if nested:
            raise NestedStepRepeat('SR step and repeat opened inside ongoing step and repeat. Closing the previous '\
                    'one first.')

    def _apply_step_repeat_close(self, cmd):
        if self.step_repeat_scope is None:
            raise UnbalancedDelimiter('SR step and repeat close without matching SR open')

        while self.document_scope.kind != ScopeKind.STEP_REPEAT:
            self.warn('UnclosedScope', f'Implicitly closing {self.document_scope} at end of step and repeat.')
            self._close_scope()
        self._close_scope()

    def _apply_attribute(self, cmd):
        if cmd.scope == AttributeScope.APERTURE:
            self.state.aperture_attrs[cmd.attr_name] = cmd.values
        elif cmd.scope == AttributeScope.OBJECT:
            self.state.object_attrs[cmd.attr_name] = cmd.values
        self.document.attributes[(cmd.scope, cmd.attr_name)] = cmd.values

    def _apply_attribute_delete(self, cmd):
        if cmd.attr_name is None:
            self.state.aperture_attrs = {}
            self.state.object_attrs = {}
            return

        found_aperture = self.state.aperture_attrs.pop(cmd.attr_name, None)
        found_object = self.state.object_attrs.pop(cmd.attr_name, None)
        if found_aperture is None and found_object is None:
            self.warn('UnknownAttribute', f'Attempt to TD delete undefined attribute {cmd.attr_name}.')

    def _apply_format_spec(self, cmd):
        if (first := self.format_spec) is not None:
            conflict = (first.integer_digits, first.decimal_digits, first.zeros, first.notation) != \
                    (cmd.integer_digits, cmd.decimal_digits, cmd.zeros, cmd.notation)
            raise DuplicateDeclaration('FS', fatal=conflict)

        self.format_spec = cmd
        fs = self.state.file_settings
        fs.number_format = (cmd.integer_digits, cmd.decimal_digits)
        fs.zeros = cmd.zeros
        fs.notation = cmd.notation

    def _apply_unit_spec(self, cmd):
        if (first := self.unit_spec) is not None:
            raise DuplicateDeclaration('MO', fatal=first.unit != cmd.unit)

        self.unit_spec = cmd
        self.state.file_settings.unit = cmd.unit

    def _apply_notation_set(self, cmd):
        self.state.file_settings.notation = 'incremental' if cmd.incremental else 'absolute'

    def _apply_polarity_set(self, cmd):
        self.state.polarity = cmd.polarity

    def _apply_mirror_set(self, cmd):
        self.state.mirror = cmd.mirror

    def _apply_rotation_set(self, cmd):
        self.state.rotation = cmd.degrees

    def _apply_scale_set(self, cmd):
        self.state.scale = cmd.factor

    def _apply_legacy_directive(self, cmd):
        pass

    def _apply_comment(self, cmd):
        pass

    def _apply_end_of_file(self, cmd):
        self.document.eof_found = True
