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

import sys
import warnings
from pathlib import Path

import click

from .batch import discover_files, analyze_files
from .fabrication import analyze_fabrication_cost
from .report import ReportOptions, X2_SECTIONS, OUTPUT_FORMATS, build_file_report, file_matches, render
from . import __version__


def _showwarning(message, category, filename, lineno, file=None, line=None):
    if file is None:
        file = sys.stderr

    # Our messages already carry the Gerber file name and line
    print(f'{category.__name__}: {message}', file=file)
warnings.showwarning = _showwarning


def _print_version(ctx, param, value):
    if value and not ctx.resilient_parsing:
        click.echo(f'Version {__version__}')
        ctx.exit()


#: CLI flag name -> report section it enables
MODE_SECTIONS = {
        'file_headers': 'file_headers',
        'apertures': 'apertures',
        'commands': 'commands',
        'graphics': 'graphics',
        'regions': 'regions',
        'blocks': 'blocks',
        'step_repeat': 'step_repeat',
        'attributes': 'attributes',
        'macros': 'macros',
        'format_info': 'format',
        'graphics_state': 'graphics_state',
        'transformations': 'transformations',
        'validate': 'validate',
        'statistics': 'stats',
    }


def select_sections(modes, x2=False, fab_cost=False, deprecated=False):
    """ Work out which report sections to show and whether to run the fabrication cost analysis.

    With no explicit mode and no ``--x2``, the fabrication cost analysis is the default.

    :param modes: dict of CLI flag name -> bool, keys as in :py:data:`MODE_SECTIONS`
    :returns: ``(sections, fab_cost)`` tuple
    """
    sections = {MODE_SECTIONS[name] for name, enabled in modes.items() if enabled}
    explicit = bool(sections) or fab_cost

    if x2:
        sections.update(X2_SECTIONS)

    if deprecated and 'commands' not in sections:
        sections.add('deprecated')

    if not explicit and not x2:
        fab_cost = True

    return sections, fab_cost


@click.command()
@click.option('--version', is_flag=True, callback=_print_version, expose_value=False, is_eager=True)
@click.option('-H', '--file-headers', is_flag=True, help='Display file headers and metadata (X2 attributes)')
@click.option('-a', '--apertures', is_flag=True, help='Display aperture definitions and their properties')
@click.option('-c', '--commands', is_flag=True, help='Display all commands in the file')
@click.option('-g', '--graphics', is_flag=True, help='Display graphics operations (D01/D02/D03) and coordinates')
@click.option('-r', '--regions', is_flag=True, help='Display region definitions (G36/G37)')
@click.option('-b', '--blocks', is_flag=True, help='Display block aperture definitions (AB)')
@click.option('-s', '--step-repeat', is_flag=True, help='Display step and repeat definitions (SR)')
@click.option('-x', '--attributes', is_flag=True, help='Display all attributes (X2 format)')
@click.option('-2', '--x2', 'x2_mode', is_flag=True, help='''Gerber X2 format analysis (file headers, format and
              attributes)''')
@click.option('-m', '--macros', is_flag=True, help='Display aperture macro definitions (AM)')
@click.option('-f', '--format', 'format_info', is_flag=True, help='Display coordinate format and units')
@click.option('--graphics-state', is_flag=True, help='Display graphics state changes')
@click.option('-t', '--transformations', is_flag=True, help='Display aperture transformations (LP, LM, LR, LS)')
@click.option('--validate', is_flag=True, help='Validate file format and report errors')
@click.option('--stats', 'statistics', is_flag=True, help='Display statistics about the file')
@click.option('--fab-cost', '--manufacturing', 'fab_cost', is_flag=True, help='''Analyze fabrication cost factors and
              manufacturing complexity. This is the default if no other mode is given.''')
@click.option('-o', '--output-format', type=click.Choice(OUTPUT_FORMATS), default='human', help='Output format')
@click.option('--aperture', 'filter_apertures', type=int, multiple=True, metavar='NUM', help='''Filter by aperture
              number (can be given multiple times)''')
@click.option('--file-function', 'filter_file_function', metavar='FUNCTION', help='''Only report files whose X2
              .FileFunction attribute contains FUNCTION''')
@click.option('--layer', 'filter_layer', metavar='LAYER', help='Filter by layer (Top, Bot, L2, etc.)')
@click.option('--deprecated', 'show_deprecated', is_flag=True, help='Show only deprecated commands and features')
@click.option('-v', '--verbose', is_flag=True, help='Verbose output (show parse warnings and progress)')
@click.option('-q', '--quiet', is_flag=True, help='Quiet mode (suppress non-essential output)')
@click.option('-R', '--recursive', is_flag=True, help='Recurse into subdirectories when input is a directory')
@click.option('--include-hidden', is_flag=True, help='Include hidden files when processing directories')
@click.option('--pattern', 'file_pattern', metavar='PATTERN', help='File pattern to match (e.g. "*.gbr")')
@click.option('-n', '--line-numbers', is_flag=True, help='Display line numbers with output')
@click.option('--offsets', 'show_offsets', is_flag=True, help='Show file offsets for commands')
@click.option('--raw', 'raw_commands', is_flag=True, help='Display raw command strings')
@click.option('--limit', type=click.IntRange(min=0), default=0, metavar='N', help='''Maximum number of items to
              display per list (0 = unlimited)''')
@click.option('-j', '--jobs', type=click.IntRange(min=1), default=None, help='''Number of worker processes for
              directories (default: one per CPU)''')
@click.option('--warnings', 'format_warnings', type=click.Choice(['default', 'ignore', 'once']), default='ignore',
              help='''Enable or disable Python warnings for file format problems during parsing (default: ignore,
              problems are reported in the output instead)''')
@click.argument('path', metavar='FILE|DIR', type=click.Path(exists=True, path_type=Path))
def cli(path, x2_mode, fab_cost, output_format, filter_apertures, filter_file_function, filter_layer,
        show_deprecated, verbose, quiet, recursive, include_hidden, file_pattern, line_numbers, show_offsets,
        raw_commands, limit, jobs, format_warnings, **modes):
    """ objdump for Gerber files. Analyze Gerber (RS-274X and X2) files or directories of them. """

    sections, fab_cost = select_sections(modes, x2=x2_mode, fab_cost=fab_cost, deprecated=show_deprecated)

    try:
        paths = discover_files(path, recursive=recursive, include_hidden=include_hidden, pattern=file_pattern)
    except FileNotFoundError as e:
        raise click.ClickException(str(e))

    if not paths:
        raise click.ClickException(f'No Gerber files found in "{path}"')

    with warnings.catch_warnings():
        warnings.simplefilter(format_warnings)
        analyses = analyze_files(paths, processes=jobs, progress=verbose and len(paths) > 1)

    options = ReportOptions(
            apertures=tuple(filter_apertures),
            file_function=filter_file_function,
            layer=filter_layer,
            deprecated_only=show_deprecated,
            verbose=verbose,
            quiet=quiet,
            line_numbers=line_numbers,
            offsets=show_offsets,
            raw=raw_commands,
            limit=limit)

    selected = [a for a in analyses if a.error is not None or file_matches(a.document, options)]
    reports = [build_file_report(a, sections, options) for a in selected]

    fabrication = None
    if fab_cost:
        documents = [a.document for a in selected if a.error is None]
        fabrication = analyze_fabrication_cost(documents)

    click.echo(render(reports, output_format, options, fabrication), nl=False)

    failed = any(a.error is not None or a.result.fatal for a in selected)
    if 'validate' in sections:
        failed |= any(f.is_error for a in selected if a.validation for f in a.validation)

    if failed:
        sys.exit(1)


if __name__ == '__main__':
    cli()
