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

from dataclasses import dataclass
from copy import deepcopy

from .utils import LengthUnit, MM, Inch
from .errors import FormatNotEstablished, MalformedCommand


@dataclass
class FileSettings:
    ''' Coordinate format settings of a Gerber file, as declared by its ``FS`` and ``MO`` statements.

    A fresh instance has no number format and no unit. Both are filled in by the graphics state machine when it
    encounters the corresponding declarations.
    '''
    #: Coordinate notation. ``'absolute'`` or ``'incremental'``. Incremental notation is deprecated but still accepted.
    notation : str = 'absolute'
    #: File unit. :py:attr:`~.utils.MM`, :py:attr:`~.utils.Inch` or ``None`` if not yet declared.
    unit : LengthUnit = None
    #: Zero suppression. ``'leading'``, ``'trailing'`` (deprecated) or ``None`` if not yet declared.
    zeros : str = None
    #: ``(integer, decimal)`` tuple of number of integer and decimal digits, ``(None, None)`` if not yet declared.
    number_format : tuple = (None, None)

    # input validation
    def __setattr__(self, name, value):
        if name == 'unit' and value not in [None, MM, Inch]:
            raise ValueError(f'Unit must be either Inch or MM, not {value}')
        elif name == 'notation' and value not in ['absolute', 'incremental']:
            raise ValueError(f'Notation must be either "absolute" or "incremental", not {value}')
        elif name == 'zeros' and value not in [None, 'leading', 'trailing']:
            raise ValueError(f'zeros must be either "leading" or "trailing" or None, not {value}')
        elif name == 'number_format':
            if len(value) != 2:
                raise ValueError(f'Number format must be a (integer, fractional) tuple of integers, not {value}')

            if value != (None, None) and (value[0] > 7 or value[1] > 7):
                raise ValueError(f'Requested precision of {value} is too high. Only up to 7.7 digits are supported.')

        super().__setattr__(name, value)

    @property
    def is_established(self):
        """ ``True`` once a coordinate format has been declared. """
        return self.number_format != (None, None)

    @property
    def is_incremental(self):
        return self.notation == 'incremental'

    def copy(self):
        return deepcopy(self)

    def __str__(self):
        notation = f'notation={self.notation} ' if self.notation != 'absolute' else ''
        return f'<File settings: unit={self.unit} {notation}zeros={self.zeros} number_format={self.number_format}>'

    def parse_gerber_value(self, value):
        """ Parse a coordinate string such as ``"-1000"`` using this file's number format.

        :returns: ``None`` for an empty or missing value, otherwise the value as float in file units.
        :raises FormatNotEstablished: if no ``FS`` statement has been seen yet.
        :raises MalformedCommand: if ``value`` is not a number.
        """
        if not value:
            return None

        if not self.is_established:
            raise FormatNotEstablished()

        sign, digits = '', value
        if digits[0] in '+-':
            sign, digits = digits[0], digits[1:]

        if '.' in digits:
            # Some exporters write decimal points despite the FS statement. Take them literally.
            try:
                return float(sign + digits)
            except ValueError as e:
                raise MalformedCommand(f'Invalid coordinate value "{value}"') from e

        if not digits.isdigit():
            raise MalformedCommand(f'Invalid coordinate value "{value}"')

        integer_digits, decimal_digits = self.number_format

        if self.zeros == 'trailing':
            digits = digits.ljust(integer_digits + decimal_digits, '0')
            number = float(digits[:integer_digits] + '.' + (digits[integer_digits:] or '0'))
        else: # leading zero suppression, also the default
            digits = digits.rjust(decimal_digits + 1, '0')
            number = float(digits[:-decimal_digits or None] + '.' + (digits[-decimal_digits:] if decimal_digits else '0'))

        return -number if sign == '-' else number
