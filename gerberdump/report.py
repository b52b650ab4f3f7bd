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
Report rendering
================

Analysis results are first collected into plain ``dict``/``list`` trees by :py:func:`build_file_report`, one per file,
and then rendered in one of the :py:data:`OUTPUT_FORMATS`. Filters and the display limit only affect what is rendered,
never the analysis itself.
"""

import io
import csv
import json
from dataclasses import dataclass, field

from .utils import Tag, MM
from .statements import AttributeScope
from .document import ScopeKind
from .aperture_macros import PRIMITIVE_NAMES


OUTPUT_FORMATS = ('human', 'json', 'xml', 'csv', 'raw')

GRAPHICS_STATE_COMMANDS = {'aperture_select', 'interpolation_mode_set', 'quadrant_mode_set', 'region_start',
                           'region_end', 'notation_set', 'polarity_set', 'mirror_set', 'rotation_set', 'scale_set'}
TRANSFORMATION_COMMANDS = {'polarity_set', 'mirror_set', 'rotation_set', 'scale_set'}
APERTURE_COMMANDS = {'aperture_definition', 'aperture_select', 'block_aperture_open'}


@dataclass
class ReportOptions:
    #: Aperture numbers to restrict aperture related output to. Empty for no restriction.
    apertures: tuple = ()
    #: Case-insensitive substring of the ``.FileFunction`` attribute a file must have to be reported
    file_function: str = None
    #: Case-insensitive layer name (e.g. ``Top``, ``Bot``, ``L2``) that must appear in ``.FileFunction``
    layer: str = None
    deprecated_only: bool = False
    verbose: bool = False
    quiet: bool = False
    line_numbers: bool = False
    offsets: bool = False
    raw: bool = False
    #: Maximum number of items per list section, ``0`` for no limit
    limit: int = 0


def file_matches(document, options):
    """ Apply the file-level ``--file-function`` and ``--layer`` filters. """
    function = (document.file_function or '').lower() if document is not None else ''

    if options.file_function and options.file_function.lower() not in function:
        return False

    if options.layer:
        values = [v.lower() for v in function.split(',')]
        if options.layer.lower() not in values:
            return False

    return True


def _num(value):
    return round(value, 6) if isinstance(value, float) else value


def _command_item(cmd, options):
    item = {'line': cmd.line, 'kind': cmd.kind, 'code': cmd.code, 'text': str(cmd), 'deprecated': cmd.deprecated}
    if options.offsets:
        item['offset'] = cmd.offset
    if options.raw:
        item['raw'] = cmd.raw
    return item


def _references_aperture(cmd, options):
    if not options.apertures:
        return True
    return cmd.name in APERTURE_COMMANDS and cmd.number in options.apertures


def _section_file_headers(analysis, options):
    doc = analysis.document
    attrs = doc.file_attributes
    fs = doc.settings
    return {
        'path': analysis.path,
        'generator': ','.join(attrs['.GenerationSoftware']) if '.GenerationSoftware' in attrs else None,
        'creation_date': ','.join(attrs['.CreationDate']) if '.CreationDate' in attrs else None,
        'file_function': doc.file_function,
        'part': ','.join(attrs['.Part']) if '.Part' in attrs else None,
        'unit': str(fs.unit) if fs.unit else None,
        'commands': len(doc.commands),
        'end_of_file': doc.eof_found,
        }


def _section_format(analysis, options):
    fs = analysis.document.settings
    integer, decimal = fs.number_format
    return {
        'unit': str(fs.unit) if fs.unit else None,
        'integer_digits': integer,
        'decimal_digits': decimal,
        'zeros': fs.zeros,
        'notation': fs.notation,
        }


def _section_apertures(analysis, options):
    out = []
    for number, ap in analysis.document.apertures.items():
        if options.apertures and number not in options.apertures:
            continue
        size = ap.min_size(MM)
        out.append({
            'number': number,
            'shape': ap.shape,
            'template': ap.template,
            'params': ','.join(f'{p:g}' for p in ap.params) if ap.shape != 'block' else None,
            'unit': str(ap.unit) if ap.unit else None,
            'min_size_mm': _num(size),
            'line': ap.line,
            'text': str(ap),
            })
    return out


def _section_commands(analysis, options):
    return [_command_item(cmd, options) for cmd in analysis.document.commands
            if _references_aperture(cmd, options) and (cmd.deprecated or not options.deprecated_only)]


def _section_deprecated(analysis, options):
    return [_command_item(cmd, options) for cmd in analysis.document.commands if cmd.deprecated]


def _section_graphics(analysis, options):
    out = []
    for op in analysis.document.operations:
        number = op.aperture.number if op.aperture is not None else None
        if options.apertures and number not in options.apertures:
            continue
        out.append({
            'line': op.source_line,
            'kind': op.kind.value,
            'x': _num(op.x),
            'y': _num(op.y),
            'i': _num(op.i) if op.is_arc else None,
            'j': _num(op.j) if op.is_arc else None,
            'interpolation': op.interpolation.name.lower() if op.interpolation else None,
            'aperture': number,
            'polarity': op.polarity.name.lower(),
            'region': op.region,
            })
    return out


def _section_regions(analysis, options):
    regions = {}
    for op in analysis.document.operations:
        if op.region is None:
            continue
        if (entry := regions.get(op.region)) is None:
            entry = regions[op.region] = {'region': op.region, 'line': op.source_line, 'polarity': op.polarity.name.lower(),
                                          'segments': 0, 'contours': 0}
        if op.kind.value == 'D02':
            entry['contours'] += 1
        else:
            entry['segments'] += 1
    return list(regions.values())


def _section_blocks(analysis, options):
    return [{'number': s.number, 'line': s.line, 'entries': len(s.entries), 'cyclic': s.cyclic, 'text': str(s)}
            for s in analysis.document.scopes if s.kind == ScopeKind.BLOCK
            and (not options.apertures or s.number in options.apertures)]


def _section_step_repeat(analysis, options):
    return [{'line': s.line, 'nx': s.nx, 'ny': s.ny, 'dx': _num(s.dx), 'dy': _num(s.dy), 'entries': len(s.entries),
             'placements': len(s.placements), 'invalid': s.invalid, 'text': str(s)}
            for s in analysis.document.scopes if s.kind == ScopeKind.STEP_REPEAT]


def _section_attributes(analysis, options):
    scope_names = {AttributeScope.FILE: 'file', AttributeScope.APERTURE: 'aperture', AttributeScope.OBJECT: 'object'}
    return [{'scope': scope_names[scope], 'name': name, 'values': ','.join(values)}
            for (scope, name), values in analysis.document.attributes.items()]


def _section_macros(analysis, options):
    out = []
    for name, macro in analysis.document.macros.items():
        out.append({
            'name': name,
            'line': macro.line,
            'primitives': len(macro.primitives),
            'variables': len(macro.variables),
            'deprecated': macro.deprecated,
            'text': f'{name}: ' + '; '.join(f'{PRIMITIVE_NAMES[p.code]}({",".join(p.modifiers)})'
                                            for p in macro.primitives),
            })
    return out


def _section_graphics_state(analysis, options):
    return [_command_item(cmd, options) for cmd in analysis.document.commands if cmd.name in GRAPHICS_STATE_COMMANDS
            and _references_aperture(cmd, options)]


def _section_transformations(analysis, options):
    return [_command_item(cmd, options) for cmd in analysis.document.commands if cmd.name in TRANSFORMATION_COMMANDS]


def _finding_item(finding):
    return {'line': finding.line, 'severity': str(finding.severity), 'kind': finding.kind, 'message': finding.message}


def _section_validate(analysis, options):
    findings = analysis.validation or []
    if options.quiet:
        findings = [f for f in findings if f.is_error]
    return [_finding_item(f) for f in findings]


def _section_stats(analysis, options):
    return analysis.statistics.as_dict() if analysis.statistics is not None else {}


#: Section name -> (title, builder). Order defines output order.
SECTIONS = {
        'file_headers': ('File headers', _section_file_headers),
        'format': ('Format', _section_format),
        'attributes': ('Attributes', _section_attributes),
        'apertures': ('Apertures', _section_apertures),
        'macros': ('Aperture macros', _section_macros),
        'commands': ('Commands', _section_commands),
        'deprecated': ('Deprecated commands', _section_deprecated),
        'graphics': ('Graphics operations', _section_graphics),
        'graphics_state': ('Graphics state changes', _section_graphics_state),
        'transformations': ('Transformations', _section_transformations),
        'regions': ('Regions', _section_regions),
        'blocks': ('Block apertures', _section_blocks),
        'step_repeat': ('Step and repeat', _section_step_repeat),
        'validate': ('Validation', _section_validate),
        'stats': ('Statistics', _section_stats),
    }

#: Sections shown by the X2 analysis mode
X2_SECTIONS = ('file_headers', 'format', 'attributes')


def build_file_report(analysis, sections, options):
    """ Collect the requested sections of one :py:class:`~.batch.FileAnalysis` into a plain dict. """
    report = {'path': analysis.path}

    if analysis.error is not None:
        report['error'] = analysis.error
        return report

    result = analysis.result
    report['fatal'] = result.fatal
    findings = result.findings if options.verbose else result.errors
    report['findings'] = [] if options.quiet else [_finding_item(f) for f in findings]

    report['sections'] = {}
    for name in SECTIONS:
        if name in sections:
            report['sections'][name] = SECTIONS[name][1](analysis, options)

    return report


def _limited(items, options):
    if options.limit and len(items) > options.limit:
        return items[:options.limit], len(items) - options.limit
    return items, 0


def _fmt(value):
    if isinstance(value, float):
        return f'{value:.6g}'
    return str(value)


def _human_item(item, options):
    prefix = ''
    if options.line_numbers and item.get('line') is not None:
        prefix += f'{item["line"]:>6}: '
    if options.offsets and item.get('offset') is not None:
        prefix += f'@{item["offset"]:<8} '

    if 'text' in item:
        body = item['text']
    elif 'message' in item:
        body = f'{item["severity"]} [{item["kind"]}] {item["message"]}'
    else:
        body = ' '.join(f'{k}={_fmt(v)}' for k, v in item.items() if k != 'line' and v is not None)

    if options.raw and item.get('raw'):
        body += f'    {item["raw"]}'
    return prefix + body


def render_human(reports, options, fabrication=None):
    out = []
    for report in reports:
        out.append(f'==> {report["path"]} <==')
        if 'error' in report:
            out.append(f'  error: {report["error"]}')
            continue

        for finding in report['findings']:
            out.append('  ' + _human_item(finding, options))

        for name, data in report['sections'].items():
            title = SECTIONS[name][0]
            if isinstance(data, dict):
                out.append(f'{title}:')
                out.extend(f'  {key}: {_fmt(value)}' for key, value in data.items() if isinstance(value, (str, int, float, bool, type(None))))
                out.extend(f'  {key}: ' + ', '.join(f'{k}={v}' for k, v in value.items())
                           for key, value in data.items() if isinstance(value, dict))
            else:
                items, rest = _limited(data, options)
                out.append(f'{title} ({len(data)}):')
                out.extend('  ' + _human_item(item, options) for item in items)
                if rest:
                    out.append(f'  ... {rest} more')
        out.append('')

    if fabrication is not None:
        out.append('Fabrication cost analysis:')
        out.append(f'  layers: {fabrication.layer_count}')
        out.append(f'  dimensions: {fabrication.dimensions[0]:.3f} x {fabrication.dimensions[1]:.3f} mm')
        out.append(f'  vias/pads (flashes): {fabrication.via_count}')
        out.append(f'  aperture diversity: {fabrication.aperture_diversity}')
        width = f'{fabrication.min_trace_width:.4f} mm' if fabrication.min_trace_width is not None else 'n/a'
        out.append(f'  min trace width: {width}')
        out.append(f'  operations: {fabrication.operation_count}')
        out.append(f'  copper coverage: {fabrication.copper_coverage*100:.1f} %')
        out.append(f'  complexity score: {fabrication.complexity_score:.1f} / 100')

    return '\n'.join(out).rstrip('\n') + '\n'


def _apply_limit(reports, options):
    out = []
    for report in reports:
        report = dict(report)
        if 'sections' in report:
            report['sections'] = {name: (_limited(data, options)[0] if isinstance(data, list) else data)
                                  for name, data in report['sections'].items()}
        out.append(report)
    return out


def render_json(reports, options, fabrication=None):
    out = {'files': _apply_limit(reports, options)}
    if fabrication is not None:
        out['fabrication_cost'] = fabrication.as_dict()
    return json.dumps(out, indent=2) + '\n'


def _xml_attrs(item):
    return {key: (str(value).lower() if isinstance(value, bool) else _fmt(value))
            for key, value in item.items() if not isinstance(value, (dict, list)) and value is not None}


def render_xml(reports, options, fabrication=None):
    files = []
    for report in _apply_limit(reports, options):
        children = [Tag('finding', **_xml_attrs(f)) for f in report.get('findings', [])]
        for name, data in report.get('sections', {}).items():
            if isinstance(data, dict):
                children.append(Tag(name, **_xml_attrs(data)))
            else:
                children.append(Tag(name, [Tag('item', **_xml_attrs(item)) for item in data], count=len(data)))
        files.append(Tag('file', children, path=report['path'], error=report.get('error')))

    if fabrication is not None:
        files.append(Tag('fabrication_cost', **_xml_attrs({k: v for k, v in fabrication.as_dict().items()
                                                           if k not in ('dimensions', 'bounds')}),
                         width=_fmt(fabrication.dimensions[0]), height=_fmt(fabrication.dimensions[1])))

    return str(Tag('gerberdump', files, root=True)) + '\n'


def render_csv(reports, options, fabrication=None):
    """ Long-format CSV: one row per reported value. """
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator='\n')
    writer.writerow(['file', 'section', 'item', 'line', 'field', 'value'])

    for report in _apply_limit(reports, options):
        if 'error' in report:
            writer.writerow([report['path'], 'error', '', '', 'error', report['error']])
            continue

        for index, finding in enumerate(report['findings']):
            writer.writerow([report['path'], 'findings', index, finding['line'], finding['kind'], finding['message']])

        for name, data in report['sections'].items():
            items = [data] if isinstance(data, dict) else data
            for index, item in enumerate(items):
                for key, value in item.items():
                    if key == 'line' or isinstance(value, (dict, list)):
                        continue
                    writer.writerow([report['path'], name, index, item.get('line', ''), key,
                                     '' if value is None else value])

    if fabrication is not None:
        for key, value in fabrication.as_dict().items():
            if key == 'dimensions':
                writer.writerow(['', 'fabrication_cost', 0, '', 'width', value['width']])
                writer.writerow(['', 'fabrication_cost', 0, '', 'height', value['height']])
            elif key != 'bounds':
                writer.writerow(['', 'fabrication_cost', 0, '', key, '' if value is None else value])

    return buf.getvalue()


def render_raw(reports, options, fabrication=None):
    """ Minimal processing: command sections as their raw source text, everything else as ``key=value``. """
    out = []
    for report in _apply_limit(reports, options):
        if 'error' in report:
            out.append(f'{report["path"]}: error: {report["error"]}')
            continue

        for name, data in report['sections'].items():
            for item in ([data] if isinstance(data, dict) else data):
                if 'raw' in item or 'code' in item:
                    out.append(item.get('raw') or item['text'])
                else:
                    out.append(' '.join(f'{k}={_fmt(v)}' for k, v in item.items() if v is not None))

    if fabrication is not None:
        out.append(' '.join(f'{k}={_fmt(v)}' for k, v in fabrication.as_dict().items()
                            if not isinstance(v, (dict, tuple)) and v is not None))

    return '\n'.join(out) + '\n' if out else ''


RENDERERS = {
        'human': render_human,
        'json': render_json,
        'xml': render_xml,
        'csv': render_csv,
        'raw': render_raw,
    }


def render(reports, output_format='human', options=None, fabrication=None):
    """ Render a list of :py:func:`build_file_report` results and an optional
    :py:class:`~.fabrication.FabricationCostReport` in the given output format. """
    return RENDERERS[output_format](reports, options or ReportOptions(), fabrication)
