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
gerberdump.utils
================
**Helpers shared by the parser and the analysis passes**

Length units, interpolation modes, warning categories and a few small geometry helpers.
"""

import math
import textwrap
from enum import Enum
from xml.sax.saxutils import quoteattr, escape


class UnknownStatementWarning(Warning):
    """ gerberdump found a Gerber statement it does not know. """
    pass


class GerberFormatWarning(SyntaxWarning):
    """ gerberdump found a statement that violates the Gerber format but could recover from it. """
    pass


class LengthUnit:
    """ Length unit of a Gerber file. Stores its conversion factor to millimeters.

    Singleton, use only the global instances ``utils.MM`` and ``utils.Inch``.
    """

    def __init__(self, name, shorthand, this_in_mm):
        self.name = name
        self.shorthand = shorthand
        self.factor = this_in_mm

    def convert_from(self, unit, value):
        """ Convert ``value`` from ``unit`` into this unit.

        :param unit: ``MM``, ``Inch`` or one of the strings ``"mm"`` or ``"inch"``
        :param float value:
        :rtype: float
        """

        if isinstance(unit, str):
            unit = to_unit(unit)

        if unit == self or unit is None or value is None:
            return value

        return value * unit.factor / self.factor

    def convert_to(self, unit, value):
        """ :py:meth:`.LengthUnit.convert_from` but in reverse. """

        if isinstance(unit, str):
            unit = to_unit(unit)

        if unit is None:
            return value

        return unit.convert_from(self, value)

    def __call__(self, value, unit):
        """ Convenience alias for :py:meth:`.LengthUnit.convert_from` """
        return self.convert_from(unit, value)

    def __eq__(self, other):
        if isinstance(other, str):
            return other.lower() in (self.name, self.shorthand)
        else:
            return id(self) == id(other)

    def __hash__(self):
        return hash(self.name)

    # Singleton. Copies and pickles must resolve to the module-level instances.
    def __copy__(self):
        return self

    def __deepcopy__(self, memo):
        return self

    def __reduce__(self):
        return 'MM' if self.name == 'millimeter' else 'Inch'

    def __str__(self):
        return self.shorthand

    def __repr__(self):
        return f'<LengthUnit {self.name}>'


MILLIMETERS_PER_INCH = 25.4
Inch = LengthUnit('inch', 'in', MILLIMETERS_PER_INCH)
MM = LengthUnit('millimeter', 'mm', 1)
units = {'inch': Inch, 'in': Inch, 'mm': MM, None: None}


def to_unit(name):
    """ Convert string ``name`` into a registered length unit.

    :param str name: ``'mm'`` or ``'inch'``
    :returns: ``MM``, ``Inch`` or ``None``
    :rtype: :py:class:`.LengthUnit` or ``None``
    """

    if name is None or isinstance(name, LengthUnit):
        return name

    if isinstance(name, str) and (unit := units.get(name.lower())):
        return unit

    raise ValueError(f'Invalid unit {name!r}. Should be either "mm", "inch" or None for no unit.')


class InterpMode(Enum):
    """ Gerber interpolation mode. """
    #: straight line
    LINEAR = 0
    #: clockwise circular arc
    CIRCULAR_CW = 1
    #: counterclockwise circular arc
    CIRCULAR_CCW = 2


def min_none(a, b):
    """ Like the ``min(..)`` builtin, but if either value is ``None``, returns the other. """
    if a is None:
        return b
    if b is None:
        return a
    return min(a, b)


def max_none(a, b):
    """ Like the ``max(..)`` builtin, but if either value is ``None``, returns the other. """
    if a is None:
        return b
    if b is None:
        return a
    return max(a, b)


def sum_bounds(bounds, *, default=None):
    """ Union of multiple bounding boxes.

    :param bounds: iterable of bounding boxes in ``((min_x, min_y), (max_x, max_y))`` format

    :returns: ``((min_x, min_y), (max_x, max_y))`` or ``default`` if ``bounds`` is empty
    :rtype: tuple
    """

    bounds = iter(bounds)

    for (min_x, min_y), (max_x, max_y) in bounds:
        break
    else:
        return default

    for (min_x_2, min_y_2), (max_x_2, max_y_2) in bounds:
        min_x, min_y = min_none(min_x, min_x_2), min_none(min_y, min_y_2)
        max_x, max_y = max_none(max_x, max_x_2), max_none(max_y, max_y_2)

    return ((min_x, min_y), (max_x, max_y))


def rotate_point(x, y, angle, cx=0, cy=0):
    """ Rotate point (x,y) around (cx,cy) by ``angle`` radians counter-clockwise. """

    return (cx + (x - cx) * math.cos(angle) - (y - cy) * math.sin(angle),
            cy + (x - cx) * math.sin(angle) + (y - cy) * math.cos(angle))


def point_in_polygon(point, poly):
    """ Even-odd test whether ``point`` lies inside the closed polygon ``poly`` (a list of ``(x, y)`` tuples). Points
    on the outline count as inside. """
    # https://wrfranklin.org/Research/Short_Notes/pnpoly.html

    if not poly:
        return False

    res = False
    tx, ty = point
    xp, yp = poly[-1]
    for x, y in poly:
        if yp == ty == y and ((x > tx) != (xp > tx)): # point on horizontal segment
            return True
        if xp == tx == x and ((y > ty) != (yp > ty)): # point on vertical segment
            return True
        if ((y > ty) != (yp > ty)):
            tmp = ((xp-x) * (ty-y) / (yp-y) + x)
            if tx == tmp: # point on diagonal segment
                return True
            elif tx < tmp:
                res = not res
        xp, yp = x, y

    return res


def point_segment_distance(p, a, b):
    """ Distance between point ``p`` and the line segment from ``a`` to ``b``. """
    (px, py), (ax, ay), (bx, by) = p, a, b
    dx, dy = bx-ax, by-ay
    length_sq = dx*dx + dy*dy
    if math.isclose(length_sq, 0):
        return math.dist(p, a)

    t = max(0.0, min(1.0, ((px-ax)*dx + (py-ay)*dy) / length_sq))
    return math.dist(p, (ax + t*dx, ay + t*dy))


class Tag:
    """ Minimal XML element builder used by the XML report renderer. Attribute names have ``__`` replaced with ``:``
    and ``_`` replaced with ``-``. """

    def __init__(self, name, children=None, root=False, text=None, **attrs):
        self.name, self.attrs = name, attrs
        self.children = children or []
        self.root = root
        self.text = text

    def __str__(self):
        prefix = '<?xml version="1.0" encoding="utf-8"?>\n' if self.root else ''
        opening = ' '.join([self.name] + [f'{key.replace("__", ":").replace("_", "-")}={quoteattr(str(value))}'
                                          for key, value in self.attrs.items() if value is not None])
        if self.children:
            children = '\n'.join(textwrap.indent(str(c), '  ') for c in self.children)
            return f'{prefix}<{opening}>\n{children}\n</{self.name}>'
        elif self.text is not None:
            return f'{prefix}<{opening}>{escape(str(self.text))}</{self.name}>'
        else:
            return f'{prefix}<{opening}/>'
