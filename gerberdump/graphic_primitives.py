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
Simple geometric shapes used to estimate copper coverage. All coordinates are in millimeters. Primitives only answer
bounding box and point containment queries, they are never combined with each other.
"""

import math
from dataclasses import dataclass, KW_ONLY

from .utils import rotate_point, point_in_polygon, point_segment_distance, sum_bounds


@dataclass
class GraphicPrimitive:
    _ : KW_ONLY
    polarity_dark : bool = True

    def bounding_box(self):
        """ Return the axis-aligned bounding box of this feature.

        :returns: ``((min_x, min_Y), (max_x, max_y))``
        :rtype: tuple
        """
        raise NotImplementedError()

    def contains(self, x, y):
        """ Test whether the point ``(x, y)`` is covered by this feature. """
        raise NotImplementedError()


@dataclass
class Circle(GraphicPrimitive):
    #: Center X coordinate
    x : float
    #: Center y coordinate
    y : float
    #: Radius, not diameter like in :py:class:`.apertures.CircleAperture`
    r : float

    def bounding_box(self):
        return ((self.x-self.r, self.y-self.r), (self.x+self.r, self.y+self.r))

    def contains(self, x, y):
        return math.dist((x, y), (self.x, self.y)) <= self.r


@dataclass
class Line(GraphicPrimitive):
    """ Straight line with round end caps. """
    x1 : float
    y1 : float
    x2 : float
    y2 : float
    width : float

    @classmethod
    def from_obround(kls, x:float, y:float, w:float, h:float, rotation:float=0, polarity_dark:bool=True):
        """ Convert a gerber obround into a :py:class:`~.graphic_primitives.Line`. """
        if w > h:
            w, a, b = h, w-h, 0
        else:
            w, a, b = w, 0, h-w

        return kls(
                *rotate_point(x-a/2, y-b/2, rotation, x, y),
                *rotate_point(x+a/2, y+b/2, rotation, x, y),
                w, polarity_dark=polarity_dark)

    def bounding_box(self):
        r = self.width / 2
        return sum_bounds([Circle(self.x1, self.y1, r).bounding_box(), Circle(self.x2, self.y2, r).bounding_box()])

    def contains(self, x, y):
        return point_segment_distance((x, y), (self.x1, self.y1), (self.x2, self.y2)) <= self.width/2


@dataclass
class Rectangle(GraphicPrimitive):
    #: **Center** X coordinate
    x : float
    #: **Center** Y coordinate
    y : float
    #: width
    w : float
    #: height
    h : float
    #: rotation around center in radians
    rotation : float = 0

    def bounding_box(self):
        return self.to_polygon().bounding_box()

    def to_polygon(self):
        x, y, w, h = self.x, self.y, self.w/2, self.h/2
        corners = [(x-w, y-h), (x+w, y-h), (x+w, y+h), (x-w, y+h)]
        return Polygon([rotate_point(px, py, self.rotation, x, y) for px, py in corners],
                       polarity_dark=self.polarity_dark)

    def contains(self, x, y):
        # Rotate the sample point into the rectangle's frame
        px, py = rotate_point(x, y, -self.rotation, self.x, self.y)
        return abs(px - self.x) <= self.w/2 and abs(py - self.y) <= self.h/2


@dataclass
class Polygon(GraphicPrimitive):
    """ Closed polygon with straight sides. Arcs in region outlines are approximated by :py:func:`arc_points`. """
    #: list of ``(x, y)`` tuples. The first and last point are considered connected.
    outline : list

    @classmethod
    def from_regular_polygon(kls, x:float, y:float, r:float, n:int, rotation:float=0, polarity_dark:bool=True):
        """ Convert an n-sided gerber polygon to a normal Polygon defined by outline """
        delta = 2*math.pi / n
        return kls([
                (x + math.cos(rotation + i*delta) * r,
                 y + math.sin(rotation + i*delta) * r)
                for i in range(n) ], polarity_dark=polarity_dark)

    def bounding_box(self):
        xs, ys = [x for x, _y in self.outline], [y for _x, y in self.outline]
        return (min(xs), min(ys)), (max(xs), max(ys))

    def contains(self, x, y):
        return point_in_polygon((x, y), self.outline)

    def __len__(self):
        return len(self.outline)

    def __bool__(self):
        return bool(len(self))


def arc_points(start, end, center, clockwise, max_angle=math.pi/18):
    """ Approximate a circular arc by a polyline. Returns the intermediate and end points, not the start point.

    :param start: ``(x, y)`` start point
    :param end: ``(x, y)`` end point
    :param center: ``(x, y)`` absolute center point
    :param bool clockwise: direction of travel from ``start`` to ``end``
    :param float max_angle: maximum angle in radians spanned by one output segment
    """
    (x1, y1), (x2, y2), (cx, cy) = start, end, center
    r = math.dist(start, center)
    a1 = math.atan2(y1-cy, x1-cx)
    a2 = math.atan2(y2-cy, x2-cx)

    sweep = a2 - a1
    if clockwise:
        sweep = sweep % -(2*math.pi)
        if math.isclose(sweep, 0, abs_tol=1e-9):
            sweep = -2*math.pi # full circle
    else:
        sweep = sweep % (2*math.pi)
        if math.isclose(sweep, 0, abs_tol=1e-9):
            sweep = 2*math.pi

    steps = max(1, math.ceil(abs(sweep) / max_angle))
    out = [(cx + r*math.cos(a1 + sweep*i/steps), cy + r*math.sin(a1 + sweep*i/steps)) for i in range(1, steps)]
    out.append((x2, y2))
    return out
