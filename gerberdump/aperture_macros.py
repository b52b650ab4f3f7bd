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
import ast
import math
import operator
from dataclasses import dataclass

from .statements import MacroPrimitive
from .errors import MalformedCommand
from .utils import rotate_point, sum_bounds


PRIMITIVE_NAMES = {
        1: 'circle',
        2: 'vector line',
        4: 'outline',
        5: 'polygon',
        6: 'moire',
        7: 'thermal',
        20: 'vector line',
        21: 'center line',
        22: 'lower left line',
    }

_BIN_OPS = {ast.Add: operator.add, ast.Sub: operator.sub, ast.Mult: operator.mul, ast.Div: operator.truediv}


@dataclass(frozen=True, slots=True)
class MacroVariable:
    """ ``$n=expression`` variable definition inside an aperture macro. """
    number: int
    expression: str
    #: Number of primitives preceding this definition in the macro body
    position: int = 0


def _to_python(expr):
    expr = expr.lower().replace('x', '*')
    return re.sub(r'\$([0-9]+)', r'var\1', expr)


def _evaluate(node, variables):
    if isinstance(node, ast.Constant) and isinstance(node.value, (int, float)):
        return float(node.value)

    elif isinstance(node, ast.BinOp) and type(node.op) in _BIN_OPS:
        return _BIN_OPS[type(node.op)](_evaluate(node.left, variables), _evaluate(node.right, variables))

    elif isinstance(node, ast.UnaryOp) and isinstance(node.op, (ast.UAdd, ast.USub)):
        value = _evaluate(node.operand, variables)
        return -value if isinstance(node.op, ast.USub) else value

    elif isinstance(node, ast.Name) and node.id.startswith('var') and node.id[3:].isdigit():
        # Undefined variables evaluate to 0
        return variables.get(int(node.id[3:]), 0.0)

    else:
        raise SyntaxError('Invalid aperture macro expression')


def parse_expression(expr):
    """ Parse an aperture macro arithmetic expression such as ``$1x0.5+0.1`` into a Python AST node.

    :raises MalformedCommand: if the expression is not valid macro syntax.
    """
    try:
        node = ast.parse(_to_python(expr), mode='eval').body
        _evaluate(node, {})
    except ZeroDivisionError:
        pass # valid syntax, e.g. "1/$1"
    except SyntaxError as e:
        raise MalformedCommand(f'Invalid aperture macro expression "{expr}"') from e
    return node


def evaluate_expression(expr, variables):
    return _evaluate(ast.parse(_to_python(expr), mode='eval').body, variables)


def parse_macro_body(blocks):
    """ Parse the ``*``-separated content blocks of an ``AM`` statement.

    :param blocks: iterable of block strings, without the leading ``AMname`` block.
    :returns: ``(primitives, variables, comments)`` tuple of tuples.
    :raises MalformedCommand: on unknown primitive codes or invalid expressions.
    """
    comments, variables, primitives = [], [], []

    for block in blocks:
        if not (block := block.strip()):
            continue

        if block.startswith('0 ') or block == '0':
            comments.append(block[2:])
            continue

        block = re.sub(r'\s', '', block)

        if block[0] == '$':
            name, _, expr = block.partition('=')
            if not name[1:].isdigit() or not expr:
                raise MalformedCommand(f'Invalid aperture macro variable definition "{block}"')
            parse_expression(expr)
            variables.append(MacroVariable(int(name[1:]), expr, len(primitives)))

        else:
            code, *modifiers = block.split(',')
            if not code.isdigit() or int(code) not in PRIMITIVE_NAMES:
                raise MalformedCommand(f'Unknown aperture macro primitive "{code}"')
            for mod in modifiers:
                parse_expression(mod)
            primitives.append(MacroPrimitive(int(code), tuple(modifiers)))

    return tuple(primitives), tuple(variables), tuple(comments)


def evaluate_macro(macro, parameters):
    """ Bind ``parameters`` to ``$1``, ``$2``, ... and evaluate all primitive modifiers of ``macro``.

    :returns: list of ``(code, modifiers)`` tuples with float modifiers.
    """
    variables = {i: float(p) for i, p in enumerate(parameters, start=1)}
    pending = list(macro.variables)
    out = []

    for index, primitive in enumerate(macro.primitives):
        while pending and pending[0].position <= index:
            var = pending.pop(0)
            variables[var.number] = evaluate_expression(var.expression, variables)
        out.append((primitive.code, tuple(evaluate_expression(mod, variables) for mod in primitive.modifiers)))

    return out


def _rotated_box(points, rotation):
    points = [rotate_point(x, y, math.radians(rotation)) for x, y in points]
    xs, ys = [x for x, _y in points], [y for _x, y in points]
    return (min(xs), min(ys)), (max(xs), max(ys))


def _primitive_bounds(code, mods):
    get = lambda i, default=0.0: mods[i] if len(mods) > i else default

    if code == 1:
        d, x, y = get(1), get(2), get(3)
        (x, y), = [rotate_point(x, y, math.radians(get(4)))]
        return (x-d/2, y-d/2), (x+d/2, y+d/2)

    elif code in (2, 20):
        w = get(1)
        (min_x, min_y), (max_x, max_y) = _rotated_box([(get(2), get(3)), (get(4), get(5))], get(6))
        return (min_x-w/2, min_y-w/2), (max_x+w/2, max_y+w/2)

    elif code == 21:
        w, h, x, y = get(1), get(2), get(3), get(4)
        return _rotated_box([(x-w/2, y-h/2), (x+w/2, y-h/2), (x+w/2, y+h/2), (x-w/2, y+h/2)], get(5))

    elif code == 22:
        w, h, x, y = get(1), get(2), get(3), get(4)
        return _rotated_box([(x, y), (x+w, y), (x+w, y+h), (x, y+h)], get(5))

    elif code == 4:
        n = int(get(1))
        coords = mods[2:2+2*(n+1)]
        points = list(zip(coords[0::2], coords[1::2]))
        return _rotated_box(points, get(2+2*(n+1))) if points else None

    elif code == 5:
        x, y, d = get(2), get(3), get(4)
        return (x-d/2, y-d/2), (x+d/2, y+d/2)

    elif code in (6, 7):
        x, y, d = get(0), get(1), get(2)
        return (x-d/2, y-d/2), (x+d/2, y+d/2)


def macro_bounds(macro, parameters):
    """ Approximate axis-aligned bounding box of a macro aperture instance centered at the origin, in file units.
    Only exposure-on primitives contribute.

    :returns: ``((min_x, min_y), (max_x, max_y))`` or ``None`` if the macro cannot be evaluated.
    """
    boxes = []
    try:
        for code, mods in evaluate_macro(macro, parameters):
            # moire and thermal have no exposure modifier
            if code not in (6, 7) and mods and mods[0] == 0:
                continue
            if (box := _primitive_bounds(code, mods)) is not None:
                boxes.append(box)
    except (ZeroDivisionError, SyntaxError, IndexError, OverflowError, ValueError):
        # e.g. division by zero, or an infinite or NaN outline vertex count
        return None

    return sum_bounds(boxes)
