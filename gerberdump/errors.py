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
Error taxonomy
==============

Everything that can go wrong while reading a Gerber file derives from :py:class:`GerberError`. Tokenizer errors
(:py:class:`MalformedSyntax`) abort the file. Command-level errors (:py:class:`MalformedCommand`) and state-level errors
(:py:class:`SemanticError`) are caught by the parse loop, recorded as :py:class:`Finding` and parsing continues, except
for the few semantic errors flagged as ``fatal``.
"""

from dataclasses import dataclass
from enum import Enum


class Severity(Enum):
    ERROR = 'error'
    WARNING = 'warning'

    def __str__(self):
        return self.value


@dataclass(frozen=True, slots=True)
class Finding:
    """ One diagnostic produced while parsing or validating a file. """
    #: :py:class:`Severity` of this finding
    severity: Severity
    #: Short machine-readable name, e.g. ``"UndefinedAperture"``
    kind: str
    #: Human-readable description
    message: str
    #: 1-based source line, or ``None`` if the finding is not tied to a location
    line: int = None
    #: Character offset into the source, or ``None``
    offset: int = None

    @property
    def is_error(self):
        return self.severity == Severity.ERROR

    def __str__(self):
        loc = f'{self.line}: ' if self.line is not None else ''
        return f'{loc}{self.severity} [{self.kind}] {self.message}'


#: Validation findings share the record type of parse findings.
ValidationFinding = Finding


class GerberError(Exception):
    """ Base class of all gerberdump parse errors. """
    #: Errors flagged fatal stop the parse of the current file.
    fatal = False

    def __init__(self, message, line=None, offset=None):
        super().__init__(message)
        self.message = message
        self.line = line
        self.offset = offset

    @property
    def kind(self):
        return type(self).__name__

    def locate(self, line, offset):
        """ Fill in the source location if the raising code did not know it. Returns ``self``. """
        if self.line is None:
            self.line, self.offset = line, offset
        return self

    def to_finding(self):
        return Finding(Severity.ERROR, self.kind, self.message, self.line, self.offset)


class MalformedSyntax(GerberError):
    """ The command stream itself cannot be split into commands, e.g. because of an unterminated ``%`` block. """
    fatal = True


class MalformedCommand(GerberError):
    """ A single command could not be parsed, e.g. because of a broken numeric literal. """
    pass


class UnknownCommand(MalformedCommand):
    def __init__(self, code, line=None, offset=None):
        super().__init__(f'Unknown command "{code}"', line, offset)
        self.code = code


class SemanticError(GerberError):
    """ A well-formed command that is not legal in the current graphics state. """
    pass


class FormatNotEstablished(SemanticError):
    fatal = True

    def __init__(self, message='Coordinate found before coordinate format (FS) was declared', line=None, offset=None):
        super().__init__(message, line, offset)


class DuplicateDeclaration(SemanticError):
    def __init__(self, statement, fatal=False, line=None, offset=None):
        conflict = ' with conflicting value' if fatal else ''
        super().__init__(f'{statement} declared more than once{conflict}', line, offset)
        self.statement = statement
        self.fatal = fatal


class UndefinedAperture(SemanticError):
    def __init__(self, number, line=None, offset=None):
        reserved = ' (aperture numbers below 10 are reserved)' if number < 10 else ''
        super().__init__(f'Selection of undefined aperture D{number}{reserved}', line, offset)
        self.number = number


class NoApertureSelected(SemanticError):
    pass


class InvalidInRegion(SemanticError):
    pass


class CyclicBlockReference(SemanticError):
    def __init__(self, number, line=None, offset=None):
        super().__init__(f'Block aperture D{number} references itself', line, offset)
        self.number = number


class InvalidRepeatCount(SemanticError):
    def __init__(self, nx, ny, line=None, offset=None):
        super().__init__(f'Step and repeat counts must be at least 1, got X{nx} Y{ny}', line, offset)
        self.nx, self.ny = nx, ny


class NestedStepRepeat(SemanticError):
    pass


class UnbalancedDelimiter(SemanticError):
    pass


class InvalidApertureParameters(SemanticError):
    pass
