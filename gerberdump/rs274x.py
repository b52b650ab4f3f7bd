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

import re
import math
import warnings
from dataclasses import dataclass, field
from pathlib import Path

from .cam import FileSettings
from .utils import MM, Inch, InterpMode, UnknownStatementWarning, GerberFormatWarning
from .errors import GerberError, MalformedCommand, UnknownCommand, Finding, Severity
from .tokenizer import tokenize
from .aperture_macros import parse_macro_body
from .graphics_state import GerberInterpreter
from . import statements as st


#: Extended command keywords. A statement starting with one of these that does not match its regex is malformed
#: rather than unknown.
EXTENDED_KEYWORDS = ('FS', 'MO', 'AD', 'AM', 'TF', 'TA', 'TO', 'TD', 'AB', 'SR', 'LP', 'LM', 'LR', 'LS',
                     'IP', 'IR', 'MI', 'SF', 'OF', 'IN', 'LN', 'AS', 'IF')


class CommandParser:
    """ Turns :py:class:`~.tokenizer.RawCommand` text into :py:class:`~.statements.Statement` instances.

    Coordinates are converted to floats in file units using ``file_settings``, which is shared with and updated by the
    graphics state machine as it processes ``FS`` and ``MO`` statements.
    """

    NUMBER = r"[\+-]?[0-9.]+"
    DECIMAL = r"[\+-]?(?:[0-9]+(?:\.[0-9]*)?|\.[0-9]+)"
    NAME = r"[a-zA-Z_$\.][a-zA-Z_$\.0-9+\-]*"

    STATEMENT_REGEXES = {
        'coord': fr"(?:(?P<prefix>G0*[123])(?=[XYIJD]))?(?:X(?P<x>{NUMBER}))?(?:Y(?P<y>{NUMBER}))?" \
            fr"(?:I(?P<i>{NUMBER}))?(?:J(?P<j>{NUMBER}))?(?:D0*(?P<op>[123]))?$",
        'aperture': r"(?P<prefix>G5[45])?D0*(?P<number>[0-9]+)$",
        'interpolation_mode': r"G0*(?P<mode>[123])$",
        'quadrant_mode': r"G7(?P<mode>[45])$",
        'region_start': r"G36$",
        'region_end': r"G37$",
        'old_unit': r"G7(?P<mode>[01])$",
        'old_notation': r"G9(?P<mode>[01])$",
        # P-CAD 2006 files have a spurious D02 before M02 as in "D02M02"
        'eof': r"(?:D0*2)?M0*(?P<code>[02])$",
        'optional_stop': r"M0*1$",
        'comment': r"G0*4(?P<text>.*)$",
        'format_spec': r"FS(?P<zeros>[LTD])?(?P<notation>[AI])(?P<garbage>[NG0-9]*)X(?P<x>[0-7][0-7])Y(?P<y>[0-7][0-7])" \
            r"(?P<trailer>[DM0-9]*)$",
        'unit_mode': r"MO(?P<unit>MM|IN)$",
        'aperture_definition': fr"ADD0*(?P<number>[0-9]+)(?P<template>{NAME})(?:,(?P<params>[^%]*))?$",
        'aperture_macro': fr"AM(?P<name>{NAME})$",
        'attribute': r"(?P<scope>TF|TA|TO)(?P<name>[._$a-zA-Z][._$a-zA-Z0-9]*)(?:,(?P<values>.*))?$",
        'attribute_delete': r"TD(?P<name>[._$a-zA-Z][._$a-zA-Z0-9]*)?$",
        'block_aperture': r"AB(?:D0*(?P<number>[0-9]+))?$",
        'step_repeat': fr"SR(?:X(?P<nx>[\+-]?[0-9]+)Y(?P<ny>[\+-]?[0-9]+)I(?P<dx>{DECIMAL})J(?P<dy>{DECIMAL}))?$",
        'load_polarity': r"LP(?P<polarity>[DC])$",
        'load_mirroring': r"LM(?P<mirror>N|XY|X|Y)$",
        'load_rotation': fr"LR(?P<degrees>{DECIMAL})$",
        'load_scaling': fr"LS(?P<factor>{DECIMAL})$",
        'legacy_directive': r"(?P<directive>IP|IR|MI|SF|OF|IN|LN|AS|IF)(?P<value>.*)$",
        }

    def __init__(self, file_settings=None, warn=None):
        self.file_settings = file_settings or FileSettings()
        self.warn = warn or (lambda kind, msg, kls=GerberFormatWarning: None)
        self.regex_cache = [(name, re.compile(exp, re.DOTALL), getattr(self, f'_parse_{name}'))
                            for name, exp in self.STATEMENT_REGEXES.items()]

    def parse_command(self, raw, body=None):
        """ Parse one raw command.

        :param raw: :py:class:`~.tokenizer.RawCommand`
        :param body: for aperture macros, the list of block strings following the ``AMname`` block.
        :raises MalformedCommand: if the command is recognized but malformed.
        :raises UnknownCommand: if the command is not recognized at all.
        """
        text = raw.text
        location = dict(line=raw.line, offset=raw.offset, raw=text)

        for name, regex, fun in self.regex_cache:
            if (match := regex.match(text)):
                if name == 'aperture_macro':
                    return fun(match, body or [], location)
                return fun(match, location)

        if raw.extended:
            code = text[:2]
        elif (d_code := re.search(r'D[0-9]+$', text)):
            code = d_code[0]
        else:
            code = re.match(r'[A-Z]?[0-9]*', text)[0] or text[:1]

        if raw.extended and code in EXTENDED_KEYWORDS:
            raise MalformedCommand(f'Malformed {code} statement "{raw.shortened()}"')
        raise UnknownCommand(code)

    @staticmethod
    def _check_aperture_number(number):
        if number < 10:
            raise MalformedCommand(f'Aperture number D{number} is reserved. Aperture numbers start at D10.')

    def _value(self, value):
        return self.file_settings.parse_gerber_value(value)

    def _parse_coord(self, match, location):
        op = {'1': st.OpKind.INTERPOLATE, '2': st.OpKind.MOVE, '3': st.OpKind.FLASH}.get(match['op'])
        x, y, i, j = (self._value(match[axis]) for axis in 'xyij')
        interpolation = None
        if match['prefix']:
            interpolation = list(InterpMode)[int(match['prefix'][-1]) - 1]

        # Modal coordinate data without D code, and G01..D01 combined statements are both deprecated
        deprecated = interpolation is not None or op is None
        return st.GraphicsOperation(op=op, x=x, y=y, i=i, j=j, interpolation=interpolation, deprecated=deprecated,
                                    **location)

    def _parse_aperture(self, match, location):
        return st.ApertureSelect(int(match['number']), match['prefix'], deprecated=bool(match['prefix']), **location)

    def _parse_interpolation_mode(self, match, location):
        return st.InterpolationModeSet(list(InterpMode)[int(match['mode']) - 1], **location)

    def _parse_quadrant_mode(self, match, location):
        # G74 single-quadrant mode is deprecated, G75 multi-quadrant mode is current
        multi = match['mode'] == '5'
        return st.QuadrantModeSet(multi, deprecated=not multi, **location)

    def _parse_region_start(self, match, location):
        return st.RegionStart(**location)

    def _parse_region_end(self, match, location):
        return st.RegionEnd(**location)

    def _parse_old_unit(self, match, location):
        return st.UnitSpec(Inch if match['mode'] == '0' else MM, deprecated=True, **location)

    def _parse_old_notation(self, match, location):
        return st.NotationSet(match['mode'] == '1', deprecated=True, **location)

    def _parse_eof(self, match, location):
        return st.EndOfFile(deprecated=match['code'] == '0', **location)

    def _parse_optional_stop(self, match, location):
        return st.LegacyDirective('M01', deprecated=True, **location)

    def _parse_comment(self, match, location):
        return st.Comment(match['text'].strip(), **location)

    def _parse_format_spec(self, match, location):
        if match['x'] != match['y']:
            self.warn('FormatMismatch', f'FS specifies different coordinate formats for X and Y '\
                    f'({match["x"]} != {match["y"]}). Using the X format.')

        zeros = 'trailing' if match['zeros'] == 'T' else 'leading'
        notation = 'incremental' if match['notation'] == 'I' else 'absolute'
        deprecated = zeros == 'trailing' or notation == 'incremental' or bool(match['garbage'] or match['trailer'])
        return st.FormatSpec(int(match['x'][0]), int(match['x'][1]), zeros, notation, deprecated=deprecated,
                             **location)

    def _parse_unit_mode(self, match, location):
        return st.UnitSpec(MM if match['unit'] == 'MM' else Inch, **location)

    def _parse_aperture_definition(self, match, location):
        number = int(match['number'])
        try:
            params = tuple(float(val) for val in match['params'].strip(' ,').split('X')) if match['params'] else ()
        except ValueError as e:
            raise MalformedCommand(f'Invalid aperture parameters "{match["params"]}"') from e

        if not all(math.isfinite(p) for p in params):
            raise MalformedCommand(f'Non-finite aperture parameters "{match["params"]}"')

        self._check_aperture_number(number)
        return st.ApertureDefinition(number, match['template'], params, **location)

    def _parse_aperture_macro(self, match, body, location):
        primitives, variables, comments = parse_macro_body(body)
        location['raw'] = '*'.join([location['raw'], *body])
        return st.ApertureMacro(match['name'], primitives, variables, comments,
                                deprecated=any(prim.deprecated for prim in primitives), **location)

    def _parse_attribute(self, match, location):
        values = tuple(match['values'].split(',')) if match['values'] is not None else ()
        return st.Attribute(st.AttributeScope(match['scope']), match['name'], values, **location)

    def _parse_attribute_delete(self, match, location):
        return st.AttributeDelete(match['name'], **location)

    def _parse_block_aperture(self, match, location):
        if match['number'] is None:
            return st.BlockApertureClose(**location)

        number = int(match['number'])
        self._check_aperture_number(number)
        return st.BlockApertureOpen(number, **location)

    def _parse_step_repeat(self, match, location):
        if match['nx'] is None:
            return st.StepRepeatClose(**location)
        return st.StepRepeatOpen(int(match['nx']), int(match['ny']), float(match['dx']), float(match['dy']),
                                 **location)

    def _parse_load_polarity(self, match, location):
        return st.PolaritySet(st.Polarity(match['polarity']), **location)

    def _parse_load_mirroring(self, match, location):
        return st.MirrorSet(match['mirror'], **location)

    def _parse_load_rotation(self, match, location):
        return st.RotationSet(float(match['degrees']), **location)

    def _parse_load_scaling(self, match, location):
        return st.ScaleSet(float(match['factor']), **location)

    def _parse_legacy_directive(self, match, location):
        return st.LegacyDirective(match['directive'], match['value'], deprecated=True, **location)


def _join_macros(commands):
    """ Attach the body blocks of ``%AM...%`` statements to their ``AMname`` command. Yields ``(raw, body)``. """
    pending = None
    for cmd in commands:
        if pending is not None:
            if cmd.group == pending[0].group:
                pending[1].append(cmd.text)
                continue
            yield pending
            pending = None

        if cmd.extended and cmd.text.startswith('AM'):
            pending = (cmd, [])
        else:
            yield cmd, None

    if pending is not None:
        yield pending


@dataclass
class ParseResult:
    """ Outcome of parsing one Gerber file. The document is always present, even if parsing was aborted. """
    #: :py:class:`~.document.Document`
    document: object
    #: list of :py:class:`~.errors.Finding` in source order
    findings: list = field(default_factory=list)
    #: ``True`` if parsing stopped early because of a fatal error
    fatal: bool = False
    filename: str = None

    @property
    def errors(self):
        return [f for f in self.findings if f.is_error]

    @property
    def warnings(self):
        return [f for f in self.findings if not f.is_error]


class _ParseSession:
    def __init__(self, filename):
        self.filename = filename or '<unknown>'
        self.findings = []
        self.current = None

    def _prefix(self, line):
        cmd = f' "{self.current.shortened()}"' if self.current is not None and self.current.line == line else ''
        return f'{self.filename}:{line if line is not None else 0}{cmd}'

    def warn(self, kind, msg, kls=GerberFormatWarning, line=None):
        if line is None and self.current is not None:
            line = self.current.line
        offset = self.current.offset if self.current is not None and self.current.line == line else None
        self.findings.append(Finding(Severity.WARNING, kind, msg, line, offset))
        warnings.warn(f'{self._prefix(line)}: {msg}', kls, stacklevel=2)

    def error(self, err):
        self.findings.append(err.to_finding())
        kls = UnknownStatementWarning if isinstance(err, UnknownCommand) else GerberFormatWarning
        warnings.warn(f'{self._prefix(err.line)}: {err.message}', kls, stacklevel=2)


def parse(data, filename=None):
    """ Parse Gerber source into a :py:class:`~.document.Document`.

    Errors are isolated per command: a broken command is recorded as an error :py:class:`~.errors.Finding` and parsing
    continues with the next one. Fatal errors (unterminated ``%`` blocks, coordinates before ``FS``, conflicting
    ``FS``/``MO`` redeclarations) stop parsing. Every finding is also issued through :py:mod:`warnings`.

    :param data: Gerber source as ``str`` or ``bytes``. Bytes are decoded as UTF-8 with replacement.
    :param filename: only used in diagnostics
    :rtype: :py:class:`ParseResult`
    """
    if isinstance(data, bytes):
        data = data.decode('utf-8', errors='replace')

    session = _ParseSession(filename)
    interpreter = GerberInterpreter(filename=filename, warn=session.warn)
    parser = CommandParser(interpreter.state.file_settings, warn=session.warn)
    fatal = False

    try:
        for raw, body in _join_macros(tokenize(data)):
            session.current = raw
            try:
                cmd = parser.parse_command(raw, body)
                interpreter.apply(cmd)

            except GerberError as e:
                session.error(e.locate(raw.line, raw.offset))
                if e.fatal:
                    fatal = True
                    break

    except GerberError as e: # raised by the tokenizer
        session.current = None
        session.error(e)
        fatal = e.fatal

    session.current = None
    document = interpreter.finish(check_eof=not fatal)
    return ParseResult(document, session.findings, fatal, filename)


def parse_file(path):
    """ Read and :py:func:`parse` the Gerber file at ``path``. """
    path = Path(path)
    return parse(path.read_bytes(), filename=str(path))
