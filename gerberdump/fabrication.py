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
Fabrication cost estimation
===========================

Derives manufacturing complexity metrics from one or several parsed layers. All lengths are in millimeters.

The complexity score is a weighted sum of three factors, each normalized to ``[0, 1]`` against a reference value and
saturating at 1:

* board area relative to :py:attr:`CostWeights.reference_area` (mm²)
* number of distinct aperture shapes relative to :py:attr:`CostWeights.reference_apertures`
* number of resolved operations relative to :py:attr:`CostWeights.reference_operations`

The weighted sum is divided by the sum of weights and scaled to ``0..100``.
"""

import math
from dataclasses import dataclass, field

import rtree.index

from .utils import MM, sum_bounds
from .statements import OpKind, Polarity
from .apertures import BlockAperture
from . import graphic_primitives as gp


@dataclass(frozen=True)
class CostWeights:
    """ Tuning knobs of the complexity score. """
    #: Weight of the board area factor
    dimension: float = 0.4
    #: Weight of the aperture diversity factor
    aperture_diversity: float = 0.3
    #: Weight of the operation count factor
    operation_count: float = 0.3
    #: Board area in mm² at which the area factor saturates. 100x100 mm.
    reference_area: float = 10000.0
    #: Number of distinct apertures at which the diversity factor saturates
    reference_apertures: int = 50
    #: Number of operations at which the operation count factor saturates
    reference_operations: int = 10000

    def __post_init__(self):
        for name in ('dimension', 'aperture_diversity', 'operation_count'):
            if getattr(self, name) < 0:
                raise ValueError(f'Weight {name} must not be negative')
        if self.dimension + self.aperture_diversity + self.operation_count <= 0:
            raise ValueError('At least one weight must be positive')
        for name in ('reference_area', 'reference_apertures', 'reference_operations'):
            if getattr(self, name) <= 0:
                raise ValueError(f'{name} must be positive')

    def score(self, area, diversity, operations):
        factors = (
                (self.dimension, min(1.0, area / self.reference_area)),
                (self.aperture_diversity, min(1.0, diversity / self.reference_apertures)),
                (self.operation_count, min(1.0, operations / self.reference_operations)),
            )
        total = sum(weight for weight, _factor in factors)
        return 100.0 * sum(weight * factor for weight, factor in factors) / total


DEFAULT_WEIGHTS = CostWeights()


@dataclass
class FabricationCostReport:
    #: ``(width, height)`` of the combined bounding box
    dimensions: tuple = (0.0, 0.0)
    #: ``((min_x, min_y), (max_x, max_y))`` or ``None`` if there are no operations
    bounds: tuple = None
    #: Number of flashes, as proxy for vias and pads
    via_count: int = 0
    #: Number of distinct aperture shapes and sizes
    aperture_diversity: int = 0
    #: Smallest aperture dimension in use, as trace width proxy. ``None`` if no aperture is in use.
    min_trace_width: float = None
    #: ``0..100``
    complexity_score: float = 0.0
    #: Estimated fraction of the board area covered by dark features, ``0..1``
    copper_coverage: float = 0.0
    layer_count: int = 0
    operation_count: int = 0

    @property
    def area(self):
        return self.dimensions[0] * self.dimensions[1]

    def as_dict(self):
        return {
            'dimensions': {'width': self.dimensions[0], 'height': self.dimensions[1], 'unit': 'mm'},
            'bounds': self.bounds,
            'via_count': self.via_count,
            'aperture_diversity': self.aperture_diversity,
            'min_trace_width': self.min_trace_width,
            'complexity_score': self.complexity_score,
            'copper_coverage': self.copper_coverage,
            'layer_count': self.layer_count,
            'operation_count': self.operation_count,
            }


def _to_mm(document, value):
    return MM(value, document.unit)


def _region_contours(document, ops):
    """ Group the resolved region operations of a document into closed polygon outlines in millimeters. """
    contours, current, key = [], [], None

    def flush():
        if len(current) >= 3:
            contours.append((key[1], current.copy()))
        current.clear()

    for op in ops:
        start = (_to_mm(document, op.start[0]), _to_mm(document, op.start[1])) if op.start else None
        end = (_to_mm(document, op.x), _to_mm(document, op.y))

        if op.kind == OpKind.MOVE or (op.region, op.polarity) != key or (current and start != current[-1]):
            flush()
            key = (op.region, op.polarity)
            if op.kind == OpKind.MOVE:
                current.append(end)
                continue

        if not current and start is not None:
            current.append(start)

        if op.is_arc and start is not None:
            cx, cy = op.center
            current.extend(gp.arc_points(start, end, (_to_mm(document, cx), _to_mm(document, cy)),
                                         op.interpolation.name == 'CIRCULAR_CW'))
        else:
            current.append(end)

    flush()
    return contours


def feature_primitives(document):
    """ Convert the resolved operations of ``document`` into :py:class:`~.graphic_primitives.GraphicPrimitive`
    instances in millimeters, in drawing order. """
    out = []
    region_ops = []

    def flush_regions():
        for polarity, outline in _region_contours(document, region_ops):
            out.append(gp.Polygon(outline, polarity_dark=(polarity == Polarity.DARK)))
        region_ops.clear()

    for op in document.operations:
        if op.region is not None:
            region_ops.append(op)
            continue
        flush_regions()

        dark = op.polarity == Polarity.DARK
        x, y = _to_mm(document, op.x), _to_mm(document, op.y)

        if op.kind == OpKind.FLASH and op.aperture is not None:
            out.extend(op.aperture.primitives(x, y, MM, dark, math.radians(op.transform.rotation), op.transform.scale,
                                             op.transform.mirror))

        elif op.kind == OpKind.INTERPOLATE and op.aperture is not None and op.start is not None:
            width = (op.aperture.equivalent_width(MM) or 0) * op.transform.scale
            start = (_to_mm(document, op.start[0]), _to_mm(document, op.start[1]))
            points = [start]
            if op.is_arc:
                cx, cy = op.center
                points += gp.arc_points(start, (x, y), (_to_mm(document, cx), _to_mm(document, cy)),
                                        op.interpolation.name == 'CIRCULAR_CW')
            else:
                points.append((x, y))

            for (x1, y1), (x2, y2) in zip(points, points[1:]):
                out.append(gp.Line(x1, y1, x2, y2, width, polarity_dark=dark))

    flush_regions()
    return out


def estimate_copper_coverage(document, samples=100):
    """ Estimate the fraction of the document's bounding box covered by dark features.

    The bounding box is sampled on a ``samples`` x ``samples`` grid. Each sample point takes the polarity of the last
    feature in drawing order that covers it. Feature lookup uses an R-tree over the feature bounding boxes.
    """
    if (bounds := document.bounds(MM)) is None:
        return 0.0

    features = feature_primitives(document)
    if not features:
        return 0.0

    (min_x, min_y), (max_x, max_y) = sum_bounds([bounds, *(f.bounding_box() for f in features)])
    w, h = max_x - min_x, max_y - min_y
    if math.isclose(w, 0) or math.isclose(h, 0):
        return 0.0

    idx = rtree.index.Index()
    for i, feature in enumerate(features):
        (fx1, fy1), (fx2, fy2) = feature.bounding_box()
        idx.insert(i, (fx1, fy1, fx2, fy2))

    dark = 0
    for ix in range(samples):
        px = min_x + (ix + 0.5) * w / samples
        for iy in range(samples):
            py = min_y + (iy + 0.5) * h / samples
            for i in sorted(idx.intersection((px, py, px, py)), reverse=True):
                if features[i].contains(px, py):
                    dark += features[i].polarity_dark
                    break

    return dark / (samples * samples)


def analyze_fabrication_cost(documents, weights=None, samples=100):
    """ Derive manufacturing metrics from one or several layers.

    :param documents: a :py:class:`~.document.Document` or an iterable of documents, one per layer
    :param weights: :py:class:`CostWeights`, ``None`` for the defaults
    :param int samples: grid resolution per axis of the copper coverage estimate
    :rtype: :py:class:`FabricationCostReport`
    """
    if not isinstance(documents, (list, tuple)):
        documents = [documents] if hasattr(documents, 'operations') else list(documents)
    weights = weights or DEFAULT_WEIGHTS

    bounds = sum_bounds(b for doc in documents if (b := doc.bounds(MM)) is not None)
    if bounds is not None:
        (min_x, min_y), (max_x, max_y) = bounds
        dimensions = (max_x - min_x, max_y - min_y)
    else:
        dimensions = (0.0, 0.0)

    via_count = sum(1 for doc in documents for op in doc.operations if op.kind == OpKind.FLASH)
    operation_count = sum(len(doc.operations) for doc in documents)

    signatures = {ap.signature for doc in documents for ap in doc.apertures.values()
                  if not isinstance(ap, BlockAperture)}

    sizes = [size for doc in documents for op in doc.operations
             if op.aperture is not None and op.kind != OpKind.MOVE
             and (size := op.aperture.min_size(MM)) is not None]
    min_trace_width = min(sizes) if sizes else None

    coverages = [estimate_copper_coverage(doc, samples) for doc in documents if doc.operations]
    copper_coverage = sum(coverages) / len(coverages) if coverages else 0.0

    return FabricationCostReport(
            dimensions=dimensions,
            bounds=bounds,
            via_count=via_count,
            aperture_diversity=len(signatures),
            min_trace_width=min_trace_width,
            complexity_score=weights.score(dimensions[0] * dimensions[1], len(signatures), operation_count),
            copper_coverage=copper_coverage,
            layer_count=len(documents),
            operation_count=operation_count)
