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

import math
import pickle

import pytest

from ..cam import FileSettings
from ..errors import FormatNotEstablished, MalformedCommand
from ..utils import (MM, Inch, to_unit, sum_bounds, rotate_point, point_in_polygon, point_segment_distance, Tag)
from .. import graphic_primitives as gp
from .utils import *


def test_zero_suppression():
    # Default format
    settings = FileSettings(number_format=(2,5), zeros='leading')
    test_cases = [
        ("1", 0.00001),
        ("10", 0.0001),
        ("100", 0.001),
        ("1000", 0.01),
        ("10000", 0.1),
        ("100000", 1.0),
        ("1000000", 10.0),
        ("0", 0.0),
        ("-1", -0.00001),
        ("+1000000", 10.0),
    ]

    for string, value in test_cases:
        assert value == pytest.approx(settings.parse_gerber_value(string))

    settings = FileSettings(number_format=(2,5), zeros='trailing')
    test_cases = [
        ("1", 10.0),
        ("01", 1.0),
        ("001", 0.1),
        ("0001", 0.01),
        ("00001", 0.001),
        ("000001", 0.0001),
        ("0000001", 0.00001),
        ("0", 0.0),
        ("-01", -1.0),
    ]

    for string, value in test_cases:
        assert value == pytest.approx(settings.parse_gerber_value(string))


def test_format():
    test_cases = [
        ((2, 7), '1', 0.0000001),
        ((2, 6), '1', 0.000001),
        ((2, 5), '1', 0.00001),
        ((2, 4), '1', 0.0001),
        ((2, 3), '1', 0.001),
        ((2, 2), '1', 0.01),
        ((2, 1), '1', 0.1),
        ((3, 0), '123', 123.0),
        ((2, 6), '1234567', 1.234567),
        ((3, 5), '1234567', 12.34567),
        ((4, 4), '1234567', 123.4567),
        ((5, 3), '1234567', 1234.567),
    ]

    for fmt, string, value in test_cases:
        settings = FileSettings(number_format=fmt, zeros='leading')
        assert value == pytest.approx(settings.parse_gerber_value(string))


def test_decimal_point():
    settings = FileSettings(number_format=(2,4), zeros='leading')
    assert settings.parse_gerber_value('1.5') == 1.5
    assert settings.parse_gerber_value('-.25') == -0.25


def test_missing_values():
    settings = FileSettings()
    assert settings.parse_gerber_value(None) is None
    assert settings.parse_gerber_value('') is None

    with pytest.raises(FormatNotEstablished):
        settings.parse_gerber_value('100')


@pytest.mark.parametrize('value', ['1a', '--1', '1.2.3', '+'])
def test_invalid_values(value):
    settings = FileSettings(number_format=(2,4), zeros='leading')
    with pytest.raises(MalformedCommand):
        settings.parse_gerber_value(value)


def test_file_settings_validation():
    fs = FileSettings()
    assert not fs.is_established
    assert not fs.is_incremental

    with pytest.raises(ValueError):
        fs.unit = 'furlong'
    with pytest.raises(ValueError):
        fs.notation = 'relative'
    with pytest.raises(ValueError):
        fs.zeros = 'both'
    with pytest.raises(ValueError):
        fs.number_format = (8, 8)

    fs.number_format = (2, 4)
    fs.notation = 'incremental'
    assert fs.is_established
    assert fs.is_incremental

    copy = fs.copy()
    copy.number_format = (3, 3)
    assert fs.number_format == (2, 4)


def test_units():
    assert MM(1, Inch) == pytest.approx(25.4)
    assert Inch(25.4, MM) == pytest.approx(1.0)
    assert Inch(1, 'mm') == pytest.approx(1/25.4)
    assert MM(3, None) == 3
    assert MM.convert_to(Inch, 25.4) == pytest.approx(1.0)

    assert to_unit('MM') is MM
    assert to_unit('inch') is Inch
    assert to_unit(None) is None
    with pytest.raises(ValueError):
        to_unit('furlong')

    assert MM == 'mm'
    assert Inch == 'in'
    assert MM != Inch
    assert str(MM) == 'mm'
    assert pickle.loads(pickle.dumps(Inch)) is Inch


def test_sum_bounds():
    assert sum_bounds([]) is None
    assert sum_bounds([], default=((0, 0), (0, 0))) == ((0, 0), (0, 0))
    assert sum_bounds([((0, 0), (1, 1)), ((-1, 0.5), (0.5, 2))]) == ((-1, 0), (1, 2))
    assert sum_bounds(b for b in [((0, 0), (1, 1))]) == ((0, 0), (1, 1))


def test_rotate_point():
    assert rotate_point(1, 0, math.pi/2) == pytest.approx((0, 1))
    assert rotate_point(2, 1, math.pi, 1, 1) == pytest.approx((0, 1))


def test_point_in_polygon():
    poly = [(0, 0), (2, 0), (2, 2), (0, 2)]
    assert point_in_polygon((1, 1), poly)
    assert point_in_polygon((0, 1), poly)
    assert not point_in_polygon((3, 1), poly)
    assert not point_in_polygon((1, 1), [])

    # concave, U-shaped
    u = [(0, 0), (3, 0), (3, 3), (2, 3), (2, 1), (1, 1), (1, 3), (0, 3)]
    assert point_in_polygon((0.5, 2), u)
    assert not point_in_polygon((1.5, 2), u)


def test_point_segment_distance():
    assert point_segment_distance((1, 1), (0, 0), (2, 0)) == pytest.approx(1)
    assert point_segment_distance((3, 0), (0, 0), (2, 0)) == pytest.approx(1)
    assert point_segment_distance((0, 1), (0, 0), (0, 0)) == pytest.approx(1)


def test_primitives_contain():
    assert gp.Circle(0, 0, 1).contains(0.5, 0.5)
    assert not gp.Circle(0, 0, 1).contains(1, 1)

    rect = gp.Rectangle(0, 0, 4, 2, math.pi/2)
    assert rect.contains(0, 1.5)
    assert not rect.contains(1.5, 0)
    (x1, y1), (x2, y2) = rect.bounding_box()
    assert (x1, y1, x2, y2) == pytest.approx((-1, -2, 1, 2))

    line = gp.Line(0, 0, 10, 0, 1)
    assert line.contains(5, 0.4)
    assert line.contains(-0.3, 0)
    assert not line.contains(5, 0.6)
    assert line.bounding_box() == ((-0.5, -0.5), (10.5, 0.5))


def test_arc_points():
    points = gp.arc_points((1, 0), (0, 1), (0, 0), clockwise=False)
    assert points[-1] == (0, 1)
    assert all(math.hypot(x, y) == pytest.approx(1) for x, y in points)
    assert all(x >= -1e-9 and y >= -1e-9 for x, y in points)

    points = gp.arc_points((1, 0), (0, 1), (0, 0), clockwise=True)
    assert any(x < -0.5 for x, y in points)

    full = gp.arc_points((1, 0), (1, 0), (0, 0), clockwise=False, max_angle=math.pi/2 + 0.01)
    assert len(full) == 4


def test_tag():
    assert str(Tag('item', line=1, kind='Comment')) == '<item line="1" kind="Comment"/>'
    assert str(Tag('item', text='a < b')) == '<item>a &lt; b</item>'
    assert str(Tag('item', none=None)) == '<item/>'
    assert str(Tag('foo_bar', some_attr='x"y')) == '<foo_bar some-attr=\'x"y\'/>'

    nested = str(Tag('root', [Tag('a'), Tag('b')], root=True))
    assert nested.startswith('<?xml version="1.0" encoding="utf-8"?>\n<root>')
    assert '\n  <a/>\n  <b/>\n' in nested
