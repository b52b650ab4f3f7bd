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
from dataclasses import dataclass, field, KW_ONLY

from .utils import LengthUnit, MM, rotate_point
from .errors import InvalidApertureParameters
from .aperture_macros import macro_bounds
from . import graphic_primitives as gp


def _mirror(x, y, mirror):
    return (-x if 'X' in mirror else x), (-y if 'Y' in mirror else y)


def _hole(self, x, y, unit, scale, polarity_dark):
    if self.hole_dia:
        return [gp.Circle(x, y, unit(self.hole_dia, self.unit)*scale/2, polarity_dark=not polarity_dark)]
    return []


@dataclass(frozen=True, slots=True)
class Aperture:
    """ Base class for all apertures. Dimensions are stored in the file unit :py:attr:`unit`. """
    _ : KW_ONLY
    #: D code this aperture was defined as
    number: int = None
    #: File unit at the time of definition. ``None`` if no ``MO`` statement preceded the definition.
    unit: LengthUnit = None
    #: Aperture attributes (``TA``) in effect at the time of definition, as tuple of ``(name, values)`` pairs
    attrs: tuple = ()
    #: Source line of the defining ``AD`` statement
    line: int = field(default=None, compare=False)

    #: Gerber template code
    template = None
    #: Human-readable shape name
    shape = 'aperture'
    #: ``(min, max)`` number of parameters accepted by the template
    param_count = (0, 0)

    @property
    def signature(self):
        """ ``(template, parameters)`` tuple. Two apertures with equal signatures produce identical images. """
        return self.template, self.params

    @property
    def params(self):
        return ()

    def min_size(self, unit=MM):
        """ Smallest feature dimension of this aperture in the given unit, ``None`` if it is not defined. """
        return None

    def equivalent_width(self, unit=MM):
        """ Width of a line interpolated with this aperture in the given unit. """
        return self.min_size(unit)

    def primitives(self, x, y, unit=MM, polarity_dark=True, rotation=0, scale=1, mirror='N'):
        """ Render a flash of this aperture at ``(x, y)`` into a list of :py:class:`~.graphic_primitives.GraphicPrimitive`.

        :param float x: center X coordinate, already in ``unit``
        :param float y: center Y coordinate, already in ``unit``
        :param float rotation: rotation in radians
        :param float scale: scale factor
        :param str mirror: ``LM`` mirroring, ``'N'``, ``'X'``, ``'Y'`` or ``'XY'``. Applied before rotation.
        """
        return []

    def __str__(self):
        return f'<D{self.number} {self.shape} aperture [{self.unit}]>'


@dataclass(frozen=True, slots=True)
class CircleAperture(Aperture):
    template = 'C'
    shape = 'circle'
    param_count = (1, 2)
    #: float with diameter of the circle in :py:attr:`unit` units.
    diameter : float = 0
    #: float with the hole diameter of this aperture in :py:attr:`unit` units. ``None`` for no hole.
    hole_dia : float = None

    @property
    def params(self):
        return tuple(p for p in (self.diameter, self.hole_dia) if p is not None)

    def min_size(self, unit=MM):
        return unit(self.diameter, self.unit)

    def primitives(self, x, y, unit=MM, polarity_dark=True, rotation=0, scale=1, mirror='N'):
        return [gp.Circle(x, y, unit(self.diameter, self.unit)*scale/2, polarity_dark=polarity_dark),
                *_hole(self, x, y, unit, scale, polarity_dark)]

    def __str__(self):
        return f'<D{self.number} circle aperture d={self.diameter:.3} [{self.unit}]>'


@dataclass(frozen=True, slots=True)
class RectangleAperture(Aperture):
    template = 'R'
    shape = 'rect'
    param_count = (2, 3)
    w : float = 0
    h : float = 0
    hole_dia : float = None

    @property
    def params(self):
        return tuple(p for p in (self.w, self.h, self.hole_dia) if p is not None)

    def min_size(self, unit=MM):
        return unit(min(self.w, self.h), self.unit)

    def equivalent_width(self, unit=MM):
        # The width of a line drawn with a rectangle depends on its direction. Use the diagonal as upper bound.
        return unit(math.hypot(self.w, self.h), self.unit)

    def primitives(self, x, y, unit=MM, polarity_dark=True, rotation=0, scale=1, mirror='N'):
        return [gp.Rectangle(x, y, unit(self.w, self.unit)*scale, unit(self.h, self.unit)*scale, rotation,
                             polarity_dark=polarity_dark),
                *_hole(self, x, y, unit, scale, polarity_dark)]

    def __str__(self):
        return f'<D{self.number} rect aperture {self.w:.3}x{self.h:.3} [{self.unit}]>'


@dataclass(frozen=True, slots=True)
class ObroundAperture(Aperture):
    """ Aperture whose shape is the convex hull of two circles of equal radii, specified through the width and height
    of its bounding rectangle. """
    template = 'O'
    shape = 'obround'
    param_count = (2, 3)
    w : float = 0
    h : float = 0
    hole_dia : float = None

    @property
    def params(self):
        return tuple(p for p in (self.w, self.h, self.hole_dia) if p is not None)

    def min_size(self, unit=MM):
        return unit(min(self.w, self.h), self.unit)

    def primitives(self, x, y, unit=MM, polarity_dark=True, rotation=0, scale=1, mirror='N'):
        return [gp.Line.from_obround(x, y, unit(self.w, self.unit)*scale, unit(self.h, self.unit)*scale, rotation,
                                     polarity_dark=polarity_dark),
                *_hole(self, x, y, unit, scale, polarity_dark)]

    def __str__(self):
        return f'<D{self.number} obround aperture {self.w:.3}x{self.h:.3} [{self.unit}]>'


@dataclass(frozen=True, slots=True)
class PolygonAperture(Aperture):
    """ Aperture whose shape is a regular n-sided polygon. """
    template = 'P'
    shape = 'polygon'
    param_count = (2, 4)
    #: Diameter of circumscribing circle
    diameter : float = 0
    #: Number of corners, 3 to 12
    n_vertices : int = 3
    #: Rotation in degrees, as written in the file
    rotation : float = None
    hole_dia : float = None

    def __post_init__(self):
        object.__setattr__(self, 'n_vertices', int(self.n_vertices))

    @property
    def params(self):
        return tuple(p for p in (self.diameter, self.n_vertices, self.rotation, self.hole_dia) if p is not None)

    def min_size(self, unit=MM):
        # Diameter of the inscribed circle
        return unit(self.diameter * math.cos(math.pi / self.n_vertices), self.unit)

    def primitives(self, x, y, unit=MM, polarity_dark=True, rotation=0, scale=1, mirror='N'):
        own = math.radians(self.rotation or 0)
        dx, dy = _mirror(math.cos(own), math.sin(own), mirror)
        rotation += math.atan2(dy, dx)
        return [gp.Polygon.from_regular_polygon(x, y, unit(self.diameter, self.unit)*scale/2, self.n_vertices,
                                                rotation, polarity_dark=polarity_dark),
                *_hole(self, x, y, unit, scale, polarity_dark)]

    def __str__(self):
        return f'<D{self.number} {self.n_vertices}-gon aperture d={self.diameter:.3} [{self.unit}]>'


@dataclass(frozen=True, slots=True)
class ApertureMacroInstance(Aperture):
    """ One binding of an aperture macro to a particular set of parameters. """
    shape = 'macro'
    param_count = (0, None)
    macro_name : str = None
    #: The :py:class:`~.statements.ApertureMacro` bound in this instance, ``None`` if it was never defined.
    macro : object = field(default=None, compare=False)
    #: The parameters to the macro. The first item is ``$1``, the second ``$2`` etc.
    parameters : tuple = ()
    #: Approximate bounding box in file units, ``None`` if the macro is undefined or cannot be evaluated
    bounds : tuple = field(default=None, compare=False)

    def __post_init__(self):
        if self.macro is not None and self.bounds is None:
            object.__setattr__(self, 'bounds', macro_bounds(self.macro, self.parameters))

    @property
    def template(self):
        return self.macro_name

    @property
    def params(self):
        return self.parameters

    def min_size(self, unit=MM):
        if self.bounds is None:
            return None
        (min_x, min_y), (max_x, max_y) = self.bounds
        return unit(min(max_x - min_x, max_y - min_y), self.unit)

    def primitives(self, x, y, unit=MM, polarity_dark=True, rotation=0, scale=1, mirror='N'):
        # Macros are approximated by their bounding box
        if self.bounds is None:
            return []
        (min_x, min_y), (max_x, max_y) = self.bounds
        cx, cy = unit((min_x + max_x)/2, self.unit)*scale, unit((min_y + max_y)/2, self.unit)*scale
        cx, cy = rotate_point(*_mirror(cx, cy, mirror), rotation)
        return [gp.Rectangle(x + cx, y + cy, unit(max_x - min_x, self.unit)*scale, unit(max_y - min_y, self.unit)*scale,
                             rotation, polarity_dark=polarity_dark)]

    def __str__(self):
        params = ', '.join(f'{p:g}' for p in self.parameters)
        return f'<D{self.number} macro aperture {self.macro_name}({params}) [{self.unit}]>'


@dataclass(frozen=True, slots=True)
class BlockAperture(Aperture):
    """ Aperture defined by an ``AB`` block. Its image is the content of the block's scope in the document arena. """
    shape = 'block'
    template = 'AB'
    #: Scope id of the block body in :py:attr:`.Document.scopes`
    scope : int = None

    @property
    def params(self):
        return (self.scope,)


STANDARD_APERTURES = {
        'C': CircleAperture,
        'R': RectangleAperture,
        'O': ObroundAperture,
        'P': PolygonAperture,
    }


def aperture_from_definition(definition, unit=None, macros=None, attrs=()):
    """ Create an :py:class:`Aperture` from an :py:class:`~.statements.ApertureDefinition` statement.

    :param macros: dict mapping macro names to :py:class:`~.statements.ApertureMacro`
    :raises InvalidApertureParameters: if the number of parameters does not fit the standard template.
    """
    common = dict(number=definition.number, unit=unit, attrs=tuple(attrs), line=definition.line)

    if (kls := STANDARD_APERTURES.get(definition.template)):
        lo, hi = kls.param_count
        if not lo <= len(definition.params) <= hi:
            raise InvalidApertureParameters(f'{kls.shape.capitalize()} aperture D{definition.number} takes {lo} to '\
                    f'{hi} parameters, got {len(definition.params)}')

        if kls is PolygonAperture and not 3 <= definition.params[1] <= 12:
            raise InvalidApertureParameters(f'Polygon aperture D{definition.number} must have between 3 and 12 '\
                    f'vertices, got {definition.params[1]:g}')

        return kls(*definition.params, **common)

    macro = (macros or {}).get(definition.template)
    return ApertureMacroInstance(definition.template, macro, definition.params, **common)
