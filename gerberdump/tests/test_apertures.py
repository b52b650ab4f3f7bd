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

import pytest

from ..apertures import (CircleAperture, RectangleAperture, ObroundAperture, PolygonAperture, ApertureMacroInstance,
                         BlockAperture, aperture_from_definition)
from ..aperture_macros import parse_macro_body
from ..statements import ApertureDefinition, ApertureMacro
from ..errors import InvalidApertureParameters
from ..utils import MM, Inch
from .. import graphic_primitives as gp


@pytest.mark.parametrize('template,params,kls,attrs', [
    ('C', (0.5,), CircleAperture, {'diameter': 0.5, 'hole_dia': None}),
    ('C', (0.5, 0.2), CircleAperture, {'diameter': 0.5, 'hole_dia': 0.2}),
    ('R', (1.0, 2.0), RectangleAperture, {'w': 1.0, 'h': 2.0}),
    ('O', (1.0, 2.0, 0.3), ObroundAperture, {'w': 1.0, 'h': 2.0, 'hole_dia': 0.3}),
    ('P', (1.0, 6), PolygonAperture, {'diameter': 1.0, 'n_vertices': 6, 'rotation': None}),
    ('P', (1.0, 4, 45), PolygonAperture, {'diameter': 1.0, 'n_vertices': 4, 'rotation': 45}),
    ])
def test_standard_apertures(template, params, kls, attrs):
    ap = aperture_from_definition(ApertureDefinition(10, template, params, line=7), unit=MM)
    assert type(ap) is kls
    assert ap.number == 10
    assert ap.line == 7
    assert ap.unit == MM
    assert ap.template == template
    assert ap.params == params
    for key, value in attrs.items():
        assert getattr(ap, key) == value


@pytest.mark.parametrize('template,params', [
    ('C', ()),
    ('C', (1, 2, 3)),
    ('R', (1,)),
    ('O', (1, 2, 3, 4)),
    ('P', (1,)),
    ('P', (1, 2)),
    ('P', (1, 13)),
    ])
def test_invalid_parameters(template, params):
    with pytest.raises(InvalidApertureParameters):
        aperture_from_definition(ApertureDefinition(10, template, params))


def test_min_size():
    assert CircleAperture(0.5, unit=MM).min_size() == 0.5
    assert CircleAperture(0.01, unit=Inch).min_size(MM) == pytest.approx(0.254)
    assert CircleAperture(0.01, unit=Inch).min_size(Inch) == 0.01
    assert RectangleAperture(1.0, 0.6, unit=MM).min_size() == 0.6
    assert ObroundAperture(2.0, 0.8, unit=MM).min_size() == 0.8
    assert PolygonAperture(2.0, 4, unit=MM).min_size() == pytest.approx(math.sqrt(2))
    assert BlockAperture(number=20).min_size() is None


def test_equivalent_width():
    assert CircleAperture(0.5, unit=MM).equivalent_width() == 0.5
    assert RectangleAperture(3.0, 4.0, unit=MM).equivalent_width() == pytest.approx(5.0)


def test_signature():
    a = CircleAperture(0.5, number=10, unit=MM)
    b = CircleAperture(0.5, number=11, unit=MM)
    c = CircleAperture(0.5, 0.1, number=12, unit=MM)
    assert a.signature == b.signature == ('C', (0.5,))
    assert a.signature != c.signature
    assert a != b


def test_macro_instance():
    primitives, variables, comments = parse_macro_body(['21,1,$1,$2,0,0,0'])
    macro = ApertureMacro('RECT', primitives, variables, comments)
    ap = aperture_from_definition(ApertureDefinition(10, 'RECT', (3.0, 1.0)), unit=MM, macros={'RECT': macro})

    assert isinstance(ap, ApertureMacroInstance)
    assert ap.template == 'RECT'
    assert ap.shape == 'macro'
    assert ap.macro is macro
    assert ap.bounds == ((-1.5, -0.5), (1.5, 0.5))
    assert ap.min_size() == pytest.approx(1.0)
    assert ap.signature == ('RECT', (3.0, 1.0))

    rect, = ap.primitives(10, 10)
    assert isinstance(rect, gp.Rectangle)
    assert (rect.x, rect.y, rect.w, rect.h) == (10, 10, 3.0, 1.0)


def test_undefined_macro_instance():
    ap = aperture_from_definition(ApertureDefinition(10, 'NOPE', (1.0,)), unit=MM)
    assert ap.macro is None
    assert ap.bounds is None
    assert ap.min_size() is None
    assert ap.primitives(0, 0) == []


def test_primitives():
    circle, hole = CircleAperture(1.0, 0.4, unit=MM).primitives(1, 2)
    assert (circle.x, circle.y, circle.r, circle.polarity_dark) == (1, 2, 0.5, True)
    assert (hole.r, hole.polarity_dark) == (0.2, False)

    rect, = RectangleAperture(1.0, 2.0, unit=Inch).primitives(0, 0, MM, scale=2)
    assert (rect.w, rect.h) == (pytest.approx(50.8), pytest.approx(101.6))

    line, = ObroundAperture(3.0, 1.0, unit=MM).primitives(0, 0)
    assert (line.x1, line.x2, line.width) == (-1.0, 1.0, 1.0)

    poly, = PolygonAperture(2.0, 6, unit=MM).primitives(0, 0, polarity_dark=False)
    assert len(poly) == 6
    assert not poly.polarity_dark
    assert poly.outline[0] == pytest.approx((1.0, 0.0))

    assert BlockAperture(number=20, scope=1).primitives(0, 0) == []


@pytest.mark.parametrize('mirror,rotation,center', [
    ('N', 0, (2, 0)),
    ('X', 0, (-2, 0)),
    ('Y', 0, (2, 0)),
    ('N', math.pi/2, (0, 2)),
    ('X', math.pi/2, (0, -2)),
    ('XY', math.pi, (2, 0)),
    ])
def test_macro_primitives_transformed(mirror, rotation, center):
    primitives, variables, comments = parse_macro_body(['1,1,1,2,0'])
    macro = ApertureMacro('OFFSET', primitives, variables, comments)
    ap = aperture_from_definition(ApertureDefinition(10, 'OFFSET', ()), unit=MM, macros={'OFFSET': macro})

    rect, = ap.primitives(0, 0, rotation=rotation, mirror=mirror)
    assert (rect.x, rect.y) == (pytest.approx(center[0], abs=1e-9), pytest.approx(center[1], abs=1e-9))
    assert rect.rotation == rotation


@pytest.mark.parametrize('mirror,angle', [
    ('N', 30),
    ('X', 150),
    ('Y', -30),
    ('XY', -150),
    ])
def test_polygon_primitives_mirrored(mirror, angle):
    poly, = PolygonAperture(2.0, 5, 30, unit=MM).primitives(0, 0, mirror=mirror)
    a = math.radians(angle)
    assert poly.outline[0] == pytest.approx((math.cos(a), math.sin(a)))


def test_str():
    assert str(CircleAperture(0.5, number=10, unit=MM)) == '<D10 circle aperture d=0.5 [mm]>'
    assert str(BlockAperture(number=20, unit=MM, scope=1)) == '<D20 block aperture [mm]>'
