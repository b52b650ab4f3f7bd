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
from dataclasses import dataclass

from .errors import MalformedSyntax


@dataclass(frozen=True, slots=True)
class RawCommand:
    """ The text of one ``*``-delimited command, without its delimiter. """
    text: str
    #: Character offset of the first character of ``text`` in the source
    offset: int
    #: 1-based source line of the first character of ``text``
    line: int
    #: ``True`` if this command was found inside a ``%...%`` extended command block
    extended: bool = False
    #: Running index of the enclosing ``%...%`` block, ``None`` for plain commands
    group: int = None

    def shortened(self, length=80):
        if len(self.text) > length:
            return f'{self.text[:20]}[...]{self.text[-20:]}'
        return self.text


# G04 comments go first because some exporters put unbalanced '%' signs inside them.
_COMMAND_RE = re.compile(r'\s*(?:(?P<comment>G0*4[^*]*\*)|(?P<extended>%[^%]*%)|(?P<open>%)|(?P<plain>[^*%]*\*)|(?P<tail>[^*%]+\Z))', re.DOTALL)
_LINE_BREAKS_RE = re.compile(r'[\r\n]+')


def _normalize(text):
    return _LINE_BREAKS_RE.sub('', text).strip()


def tokenize(data):
    """ Split Gerber source text into a lazy sequence of :py:class:`RawCommand`.

    Plain commands are delimited by ``*``. Each ``*``-delimited statement inside a ``%...%`` block becomes its own
    :py:class:`RawCommand` with ``extended=True``; statements of the same block share a ``group`` number.

    :param str data: Gerber source
    :raises MalformedSyntax: when a ``%`` block is not terminated before the end of input.
    """

    lineno, last_pos = 1, 0
    group = 0

    def locate(pos):
        nonlocal lineno, last_pos
        lineno += data.count('\n', last_pos, pos)
        last_pos = pos
        return lineno

    pos = 0
    while pos < len(data):
        match = _COMMAND_RE.match(data, pos)
        if match is None:
            # Only trailing whitespace left
            break

        kind = match.lastgroup
        start = match.start(kind)
        pos = match.end()

        if kind == 'open':
            raise MalformedSyntax('Unterminated "%" extended command block', locate(start), start)

        elif kind == 'extended':
            body = match[kind][1:-1]
            body_start = start + 1
            for sub in re.finditer(r'[^*]+', body):
                if not (text := _normalize(sub[0])):
                    continue
                sub_pos = body_start + sub.start() + (len(sub[0]) - len(sub[0].lstrip()))
                yield RawCommand(text, sub_pos, locate(sub_pos), extended=True, group=group)
            group += 1

        else:
            text = _normalize(match[kind].rstrip('*') if kind != 'tail' else match[kind])
            if text:
                yield RawCommand(text, start, locate(start))
