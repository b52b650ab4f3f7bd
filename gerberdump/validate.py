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
Post-parse conformance checks. :py:func:`validate` only reads the document, so running it twice yields the same
findings.
"""

from .errors import ValidationFinding, Severity
from .apertures import STANDARD_APERTURES
from .document import ScopeKind


def _error(kind, message, line=None):
    return ValidationFinding(Severity.ERROR, kind, message, line)


def _warning(kind, message, line=None):
    return ValidationFinding(Severity.WARNING, kind, message, line)


def _check_declarations(document):
    first_coord = None
    seen = {'FS': [], 'MO': []}

    for cmd in document.commands:
        if cmd.name == 'format_spec':
            seen['FS'].append(cmd)
        elif cmd.name == 'unit_spec':
            seen['MO'].append(cmd)
        elif cmd.name == 'graphics_operation' and cmd.has_coordinates and first_coord is None:
            first_coord = cmd

    for code, cmds in seen.items():
        if not cmds:
            yield _error('MissingDeclaration', f'File does not declare {code}')
            continue

        for dup in cmds[1:]:
            yield _error('DuplicateDeclaration', f'{code} declared more than once', dup.line)

        if first_coord is not None and cmds[0].line is not None and first_coord.line is not None \
                and cmds[0].line > first_coord.line:
            yield _error('LateDeclaration', f'{code} declared after the first coordinate on line {first_coord.line}',
                         cmds[0].line)


def _check_apertures(document):
    defined, macros = set(), set()
    reported = set()

    for cmd in document.commands:
        if cmd.name == 'aperture_macro':
            macros.add(cmd.macro_name)

        elif cmd.name == 'aperture_definition':
            defined.add(cmd.number)
            if cmd.template not in STANDARD_APERTURES and cmd.template not in macros:
                yield _error('UndefinedMacro', f'Aperture D{cmd.number} references undefined macro '\
                        f'"{cmd.template}"', cmd.line)

        elif cmd.name == 'block_aperture_open':
            defined.add(cmd.number)

        elif cmd.name == 'aperture_select' and cmd.number not in defined and cmd.number not in reported:
            reported.add(cmd.number)
            if cmd.number in document.apertures:
                yield _error('ApertureUsedBeforeDefinition', f'Aperture D{cmd.number} selected before its '\
                        'definition', cmd.line)
            else:
                yield _error('UndefinedAperture', f'Aperture D{cmd.number} is never defined', cmd.line)


def _check_balance(document):
    region_open = None
    blocks, step_repeat = [], None

    for cmd in document.commands:
        if cmd.name == 'region_start':
            if region_open is not None:
                yield _error('UnbalancedRegion', f'G36 inside region opened on line {region_open.line}', cmd.line)
            region_open = cmd

        elif cmd.name == 'region_end':
            if region_open is None:
                yield _error('UnbalancedRegion', 'G37 without matching G36', cmd.line)
            region_open = None

        elif cmd.name == 'block_aperture_open':
            blocks.append(cmd)

        elif cmd.name == 'block_aperture_close':
            if not blocks:
                yield _error('UnbalancedBlock', 'AB close without matching AB open', cmd.line)
            else:
                blocks.pop()

        elif cmd.name == 'step_repeat_open':
            step_repeat = cmd

        elif cmd.name == 'step_repeat_close':
            if step_repeat is None:
                yield _error('UnbalancedStepRepeat', 'SR close without matching SR open', cmd.line)
            step_repeat = None

    if region_open is not None:
        yield _error('UnbalancedRegion', 'G36 region is never closed', region_open.line)

    for cmd in blocks:
        yield _error('UnbalancedBlock', f'Block aperture D{cmd.number} is never closed', cmd.line)

    if step_repeat is not None:
        yield _error('UnbalancedStepRepeat', 'SR step and repeat is never closed', step_repeat.line)


def _check_blocks(document):
    for scope in document.scopes:
        if scope.kind == ScopeKind.BLOCK and not scope.entries:
            yield _warning('EmptyBlock', f'Block aperture D{scope.number} is empty', scope.line)


def _check_deprecated(document):
    seen = {}
    for cmd in document.commands:
        if cmd.deprecated and cmd.name != 'aperture_macro' and cmd.code not in seen:
            seen[cmd.code] = cmd

    for macro in document.macros.values():
        for prim in macro.primitives:
            if prim.deprecated and (code := f'AM primitive {prim.code}') not in seen:
                seen[code] = macro

    for code, cmd in seen.items():
        yield _warning('DeprecatedStatement', f'Deprecated {code} statement', cmd.line)


def _check_eof(document):
    if not any(cmd.name == 'end_of_file' for cmd in document.commands):
        yield _warning('MissingEndOfFile', 'File is missing mandatory M02 end of file marker')


CHECKS = [
        _check_declarations,
        _check_apertures,
        _check_balance,
        _check_blocks,
        _check_deprecated,
        _check_eof,
    ]


def validate(document):
    """ Check a parsed :py:class:`~.document.Document` against the Gerber format rules.

    :returns: list of :py:class:`~.errors.ValidationFinding`, grouped by check in a fixed order.
    """
    return [finding for check in CHECKS for finding in check(document)]
