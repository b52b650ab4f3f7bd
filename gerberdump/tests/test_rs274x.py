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

import pytest

from ..rs274x import CommandParser, parse, parse_file
from ..tokenizer import RawCommand
from ..cam import FileSettings
from ..errors import MalformedCommand, UnknownCommand
from ..utils import MM, Inch, InterpMode, GerberFormatWarning, UnknownStatementWarning
from ..apertures import CircleAperture
from .. import statements as st
from .utils import *


def ext(text):
    return RawCommand(text, 0, 1, extended=True)

def plain(text):
    return RawCommand(text, 0, 1)

@pytest.fixture
def parser():
    return CommandParser(FileSettings(number_format=(2, 4), zeros='leading', unit=MM))


@pytest.mark.parametrize('text,expected', [
    ('FSLAX24Y24', st.FormatSpec(2, 4, 'leading', 'absolute')),
    ('MOMM', st.UnitSpec(MM)),
    ('MOIN', st.UnitSpec(Inch)),
    ('ADD10C,0.5', st.ApertureDefinition(10, 'C', (0.5,))),
    ('ADD11R,1.0X0.6', st.ApertureDefinition(11, 'R', (1.0, 0.6))),
    ('ADD012P,1.5X6X30', st.ApertureDefinition(12, 'P', (1.5, 6.0, 30.0))),
    ('ADD13THERMAL80', st.ApertureDefinition(13, 'THERMAL80', ())),
    ('SRX3Y2I2.5J1.5', st.StepRepeatOpen(3, 2, 2.5, 1.5)),
    ('SR', st.StepRepeatClose()),
    ('ABD12', st.BlockApertureOpen(12)),
    ('AB', st.BlockApertureClose()),
    ('LPC', st.PolaritySet(st.Polarity.CLEAR)),
    ('LMXY', st.MirrorSet('XY')),
    ('LR45', st.RotationSet(45.0)),
    ('LS0.5', st.ScaleSet(0.5)),
    ('TF.FileFunction,Copper,L1,Top', st.Attribute(st.AttributeScope.FILE, '.FileFunction', ('Copper', 'L1', 'Top'))),
    ('TA.AperFunction,SMDPad,CuDef', st.Attribute(st.AttributeScope.APERTURE, '.AperFunction', ('SMDPad', 'CuDef'))),
    ('TO.N,GND', st.Attribute(st.AttributeScope.OBJECT, '.N', ('GND',))),
    ('TD', st.AttributeDelete()),
    ('TD.AperFunction', st.AttributeDelete('.AperFunction')),
    ])
def test_extended_commands(parser, text, expected):
    assert parser.parse_command(ext(text)) == expected


@pytest.mark.parametrize('text,expected', [
    ('G01', st.InterpolationModeSet(InterpMode.LINEAR)),
    ('G2', st.InterpolationModeSet(InterpMode.CIRCULAR_CW)),
    ('G03', st.InterpolationModeSet(InterpMode.CIRCULAR_CCW)),
    ('G74', st.QuadrantModeSet(False, deprecated=True)),
    ('G75', st.QuadrantModeSet(True)),
    ('G36', st.RegionStart()),
    ('G37', st.RegionEnd()),
    ('D10', st.ApertureSelect(10)),
    ('D123', st.ApertureSelect(123)),
    ('M02', st.EndOfFile()),
    ('X1000000Y-500D01', st.GraphicsOperation(op=st.OpKind.INTERPOLATE, x=100.0, y=-0.05)),
    ('X10000D02', st.GraphicsOperation(op=st.OpKind.MOVE, x=1.0)),
    ('D03', st.GraphicsOperation(op=st.OpKind.FLASH)),
    ('X0Y0I5000J0D01', st.GraphicsOperation(op=st.OpKind.INTERPOLATE, x=0.0, y=0.0, i=0.5, j=0.0)),
    ])
def test_function_codes(parser, text, expected):
    assert parser.parse_command(plain(text)) == expected


def test_comment(parser):
    cmd = parser.parse_command(plain('G04 This is a comment'))
    assert cmd == st.Comment('This is a comment')
    assert cmd.code == 'G04'


@pytest.mark.parametrize('text,code', [
    ('G01X100Y100D01', 'G01D01'),
    ('G03X0Y0I100J0D01', 'G03D01'),
    ('X100Y100', 'D01 (modal)'),
    ('G54D10', 'G54D'),
    ('G55D10', 'G55D'),
    ('G74', 'G74'),
    ('G70', 'G70'),
    ('G71', 'G71'),
    ('G90', 'G90'),
    ('G91', 'G91'),
    ('M00', 'M00'),
    ('M01', 'M01'),
    ])
def test_deprecated_function_codes(parser, text, code):
    cmd = parser.parse_command(plain(text))
    assert cmd.deprecated
    assert cmd.code == code


@pytest.mark.parametrize('text,code', [
    ('FSTAX24Y24', 'FS'),
    ('FSLIX24Y24', 'FS'),
    ('FSLAN2X24Y24', 'FS'),
    ('IPPOS', 'IP'),
    ('IRD90', 'IR'),
    ('MIA0B1', 'MI'),
    ('SFA1B1', 'SF'),
    ('OFA0B0', 'OF'),
    ('INBOARD', 'IN'),
    ('LNTOP', 'LN'),
    ('ASAXBY', 'AS'),
    ])
def test_deprecated_extended_commands(parser, text, code):
    cmd = parser.parse_command(ext(text))
    assert cmd.deprecated
    assert cmd.code == code


def test_combined_interpolation(parser):
    cmd = parser.parse_command(plain('G02X100Y0I50J0D01'))
    assert cmd.interpolation == InterpMode.CIRCULAR_CW
    assert cmd.op == st.OpKind.INTERPOLATE
    assert cmd.x == pytest.approx(0.01)


def test_format_spec_variants(parser):
    cmd = parser.parse_command(ext('FSTIX35Y35'))
    assert (cmd.integer_digits, cmd.decimal_digits, cmd.zeros, cmd.notation) == (3, 5, 'trailing', 'incremental')

    assert parser.parse_command(ext('FSAX24Y24')).zeros == 'leading'


def test_format_spec_mismatch():
    warned = []
    parser = CommandParser(warn=lambda kind, msg, kls=GerberFormatWarning: warned.append(kind))
    cmd = parser.parse_command(ext('FSLAX24Y35'))
    assert (cmd.integer_digits, cmd.decimal_digits) == (2, 4)
    assert warned == ['FormatMismatch']


def test_reserved_aperture_number(parser):
    with pytest.raises(MalformedCommand) as exc_info:
        parser.parse_command(ext('ADD05C,0.5'))
    assert 'D5' in exc_info.value.message


def test_invalid_aperture_parameters(parser):
    with pytest.raises(MalformedCommand):
        parser.parse_command(ext('ADD10C,0.5X'))


@pytest.mark.parametrize('text', ['FSLAXY', 'MOCM', 'SRX2Y2', 'LPX', 'ADD10'])
def test_malformed_extended(parser, text):
    with pytest.raises(MalformedCommand) as exc_info:
        parser.parse_command(ext(text))
    assert not isinstance(exc_info.value, UnknownCommand)


@pytest.mark.parametrize('raw,code', [
    (ext('XYZ'), 'XY'),
    (plain('G99'), 'G99'),
    (plain('M99'), 'M99'),
    (plain('Q12D10'), 'D10'),
    ])
def test_unknown_command(parser, raw, code):
    with pytest.raises(UnknownCommand) as exc_info:
        parser.parse_command(raw)
    assert exc_info.value.code == code


def test_invalid_coordinate(parser):
    with pytest.raises(MalformedCommand):
        parser.parse_command(plain('X1.2.3D01'))


def test_aperture_macro(parser):
    cmd = parser.parse_command(ext('AMRECTC'), ['$3=$1/2', '21,1,$1,$2,0,0,0', '1,1,$3,0,0'])
    assert cmd.macro_name == 'RECTC'
    assert [p.code for p in cmd.primitives] == [21, 1]
    assert [v.number for v in cmd.variables] == [3]
    assert not cmd.deprecated
    assert cmd.raw == 'AMRECTC*$3=$1/2*21,1,$1,$2,0,0,0*1,1,$3,0,0'

    old = parser.parse_command(ext('AMOLD'), ['2,1,0.1,0,0,1,0,0'])
    assert old.deprecated


SCENARIO_A = gerber(
    '%FSLAX24Y24*%',
    '%MOMM*%',
    '%ADD10C,0.5*%',
    'D10*',
    'X0Y0D02*',
    'X1000000Y0D01*')

@filter_syntax_warnings
def test_basic_document():
    result = parse(SCENARIO_A)
    doc = result.document

    assert not result.fatal
    assert result.errors == []
    assert doc.unit == MM
    assert doc.settings.number_format == (2, 4)

    assert list(doc.apertures) == [10]
    ap = doc.apertures[10]
    assert isinstance(ap, CircleAperture)
    assert ap.diameter == pytest.approx(0.5)
    assert ap.min_size(MM) == pytest.approx(0.5)

    assert [op.kind for op in doc.operations] == [st.OpKind.MOVE, st.OpKind.INTERPOLATE]
    end = doc.operations[-1]
    assert (end.x, end.y) == (pytest.approx(100.0), pytest.approx(0.0))
    assert end.start == (0.0, 0.0)
    assert end.aperture is ap


def test_basic_document_warnings():
    with pytest.warns(GerberFormatWarning, match='missing mandatory M02'):
        result = parse(SCENARIO_A, filename='scenario_a.gbr')
    assert {f.kind for f in result.warnings} == {'MissingInterpolationMode', 'MissingEndOfFile'}


@filter_syntax_warnings
def test_missing_format_is_fatal():
    result = parse(gerber(
        '%MOMM*%',
        '%ADD10C,0.5*%',
        'D10*',
        'X0Y0D03*',
        'X100Y0D03*',
        'M02*'))

    assert result.fatal
    assert [(e.kind, e.line) for e in result.errors] == [('FormatNotEstablished', 4)]
    assert result.document.operations == ()
    # No missing EOF warning after a fatal error
    assert 'MissingEndOfFile' not in {f.kind for f in result.findings}


@filter_syntax_warnings
def test_undefined_aperture_continues():
    result = parse(gerber(
        '%FSLAX24Y24*%',
        '%MOMM*%',
        '%ADD10C,0.5*%',
        'D10*',
        'X0Y0D03*',
        'D05*',
        'X10000Y0D03*',
        'D10*',
        'X20000Y0D03*',
        'M02*'))

    assert not result.fatal
    assert [(e.kind, e.line) for e in result.errors] == [('UndefinedAperture', 6)]
    assert len(result.document.commands) == 10
    assert [op.x for op in result.document.operations] == [0.0, 2.0]


@filter_syntax_warnings
def test_step_repeat_expansion():
    result = parse(gerber(
        '%FSLAX24Y24*%',
        '%MOMM*%',
        '%ADD10C,0.5*%',
        'D10*',
        '%SRX2Y1I5J0*%',
        'X0Y0D03*',
        '%SR*%',
        'M02*'))

    assert result.findings == []
    ops = result.document.operations
    assert [op.kind for op in ops] == [st.OpKind.FLASH] * 2
    assert [(op.x, op.y) for op in ops] == [(0.0, 0.0), (5.0, 0.0)]
    assert all(op.aperture.number == 10 for op in ops)


@filter_syntax_warnings
def test_cyclic_block():
    result = parse(gerber(
        '%FSLAX24Y24*%',
        '%MOMM*%',
        '%ADD10C,0.5*%',
        '%ABD20*%',
        'D10*',
        'X0Y0D03*',
        'D20*',
        'X10000Y0D03*',
        '%AB*%',
        'D20*',
        'X100000Y0D03*',
        'M02*'))

    assert not result.fatal
    assert [(e.kind, e.line) for e in result.errors] == [('CyclicBlockReference', 7)]

    block, = result.document.block_scopes
    assert block.cyclic
    assert len(block.entries) == 2
    assert result.document.operations == ()


@filter_syntax_warnings
def test_unknown_command_continues():
    result = parse(gerber(
        '%FSLAX24Y24*%',
        '%MOMM*%',
        '%ADD10C,0.5*%',
        'D10*',
        'G99*',
        'X0Y0D03*',
        'M02*'))

    assert [(e.kind, e.line) for e in result.errors] == [('UnknownCommand', 5)]
    assert len(result.document.operations) == 1


def test_unknown_command_warning():
    with pytest.warns(UnknownStatementWarning, match='G99'):
        parse('%FSLAX24Y24*%%MOMM*%G99*M02*')


@filter_syntax_warnings
def test_unterminated_block_is_fatal():
    result = parse(gerber(
        '%FSLAX24Y24*%',
        '%MOMM*%',
        '%ADD10C,0.5*%',
        'D10*',
        'X0Y0D03*',
        '%LPC*',
        'X100Y0D03*',
        'M02*'))

    assert result.fatal
    assert [e.kind for e in result.errors] == ['MalformedSyntax']
    assert len(result.document.operations) == 1


@filter_syntax_warnings
def test_duplicate_declarations():
    same = parse(gerber('%FSLAX24Y24*%', '%MOMM*%', '%FSLAX24Y24*%', '%MOMM*%', 'M02*'))
    assert not same.fatal
    assert [e.kind for e in same.errors] == ['DuplicateDeclaration', 'DuplicateDeclaration']

    conflict = parse(gerber('%FSLAX24Y24*%', '%MOMM*%', '%MOIN*%', 'M02*'))
    assert conflict.fatal
    assert [(e.kind, e.line) for e in conflict.errors] == [('DuplicateDeclaration', 3)]
    assert conflict.document.unit == MM


@filter_syntax_warnings
def test_malformed_command_continues():
    result = parse(gerber('%FSLAX24Y24*%', '%MOMM*%', '%ADD10C,abc*%', '%ADD11C,0.5*%', 'M02*'))
    assert [(e.kind, e.line) for e in result.errors] == [('MalformedCommand', 3)]
    assert list(result.document.apertures) == [11]


@pytest.mark.parametrize('text', ['ADD10OUT,1e999', 'ADD10C,inf', 'ADD10R,1XNaN'])
def test_non_finite_aperture_parameters(parser, text):
    with pytest.raises(MalformedCommand):
        parser.parse_command(ext(text))


@filter_syntax_warnings
def test_non_finite_macro_parameter_continues():
    result = parse('%FSLAX24Y24*%%MOMM*%%AMOUT*4,1,$1,0,0,1,0,1,1,0,0,0*%%ADD10OUT,1e999*%D10*X0Y0D03*M02*')
    assert not result.fatal
    assert 'MalformedCommand' in [e.kind for e in result.errors]
    assert 'UndefinedAperture' in [e.kind for e in result.errors]
    assert result.document.apertures == {}
    assert result.document.eof_found


@pytest.mark.parametrize('text', ['ABD05', 'ABD0', 'ABD009'])
def test_reserved_block_aperture_number(parser, text):
    with pytest.raises(MalformedCommand):
        parser.parse_command(ext(text))


@filter_syntax_warnings
def test_reserved_block_aperture_continues():
    result = parse(gerber(
        '%FSLAX24Y24*%',
        '%MOMM*%',
        '%ADD10C,0.5*%',
        '%ABD05*%',
        'D10*',
        'X0Y0D03*',
        '%AB*%',
        'D05*',
        'M02*'))

    assert not result.fatal
    assert [(e.kind, e.line) for e in result.errors] == [
            ('MalformedCommand', 4), ('UnbalancedDelimiter', 7), ('UndefinedAperture', 8)]
    assert list(result.document.apertures) == [10]
    assert result.document.block_scopes == []
    assert len(result.document.operations) == 1


@filter_syntax_warnings
def test_parse_bytes():
    result = parse(SCENARIO_A.encode() + b'G04 \xff*\nM02*\n')
    assert not result.fatal
    assert result.document.eof_found


@filter_syntax_warnings
@pytest.mark.parametrize('reference', ['legacy.gbr'], indirect=True)
def test_legacy_file(reference):
    result = parse_file(reference)
    doc = result.document

    assert result.errors == []
    assert doc.unit == Inch
    assert [cmd.code for cmd in doc.commands if cmd.deprecated] == \
            ['IP', 'G70', 'G54D', 'G90', 'G01D02', 'D01 (modal)', 'G74', 'M00']
    assert doc.eof_found

    assert [op.kind for op in doc.operations] == [st.OpKind.MOVE, st.OpKind.INTERPOLATE, st.OpKind.INTERPOLATE]
    assert (doc.operations[-1].x, doc.operations[-1].y) == (1.0, 1.0)


@pytest.mark.parametrize('reference', ['legacy.gbr'], indirect=True)
def test_deprecation_warnings(reference):
    with pytest.warns(DeprecationWarning, match='legacy.gbr:6 "G54D10"'):
        parse_file(reference)


@filter_syntax_warnings
@pytest.mark.parametrize('reference', ['errors.gbr'], indirect=True)
def test_error_file(reference):
    result = parse_file(reference)

    assert not result.fatal
    assert result.filename == str(reference)
    assert [(e.kind, e.line) for e in result.errors] == [('UndefinedAperture', 8), ('UnknownCommand', 10)]
    assert 'MissingEndOfFile' in {w.kind for w in result.warnings}
    assert [op.kind for op in result.document.operations] == [st.OpKind.MOVE, st.OpKind.INTERPOLATE]


@filter_syntax_warnings
@pytest.mark.parametrize('reference', ['macro.gbr'], indirect=True)
def test_macro_file(reference):
    doc = parse_file(reference).document

    assert set(doc.macros) == {'DONUT', 'RECTC'}
    assert doc.macros['DONUT'].comments == ('Ring with exposure off center',)

    donut, rectc = doc.apertures[10], doc.apertures[11]
    assert donut.macro is doc.macros['DONUT']
    assert donut.parameters == (2.0, 1.0)
    assert donut.bounds == ((-1.0, -1.0), (1.0, 1.0))
    assert rectc.bounds == ((-2.0, -1.0), (2.0, 1.0))
    assert rectc.min_size(MM) == pytest.approx(2.0)


@filter_syntax_warnings
def test_macro_failure_isolation():
    result = parse(gerber(
        '%FSLAX24Y24*%',
        '%MOMM*%',
        '%AMDIV*1,1,1/$1,0,0*%',
        '%ADD10DIV,0*%',
        '%ADD11DIV,1*%',
        'D10*',
        'X0Y0D03*',
        'D11*',
        'X10000Y0D03*',
        'M02*'))

    assert not result.fatal
    assert result.errors == []
    apertures = result.document.apertures
    assert apertures[10].bounds is None
    assert apertures[10].min_size() is None
    assert apertures[11].bounds == ((-0.5, -0.5), (0.5, 0.5))
    assert [op.aperture.number for op in result.document.operations] == [10, 11]
