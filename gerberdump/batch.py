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

import fnmatch
import functools
import multiprocessing.pool
from dataclasses import dataclass, field
from pathlib import Path

import tqdm

from .rs274x import parse_file
from .validate import validate
from .statistics import collect_statistics


#: File name patterns considered Gerber files when walking a directory without an explicit pattern
GERBER_PATTERNS = ('*.gbr', '*.ger', '*.gtl', '*.gbl', '*.gto', '*.gbo', '*.gts', '*.gbs', '*.gtp', '*.gbp', '*.gko',
                   '*.gm1', '*.gml', '*.g[0-9]', '*.g[0-9][0-9]', '*.pho', '*.art', '*.gdo', '*.cmp', '*.sol')


def _is_hidden(path, root):
    return any(part.startswith('.') for part in path.relative_to(root).parts)


def discover_files(path, recursive=False, include_hidden=False, pattern=None):
    """ Collect the Gerber files to analyze.

    :param path: a file, which is returned as-is, or a directory to search
    :param bool recursive: descend into subdirectories
    :param bool include_hidden: include files and directories whose name starts with a dot
    :param str pattern: shell-style glob matched against the file name, case-insensitive. Defaults to the common
                        Gerber file extensions.
    :returns: sorted list of :py:class:`pathlib.Path`
    :raises FileNotFoundError: if ``path`` does not exist
    """
    path = Path(path)
    if path.is_file():
        return [path]
    if not path.is_dir():
        raise FileNotFoundError(f'"{path}" does not exist')

    patterns = [pattern.lower()] if pattern else GERBER_PATTERNS
    candidates = path.glob('**/*') if recursive else path.iterdir()

    return sorted(p for p in candidates
                  if p.is_file()
                  and (include_hidden or not _is_hidden(p, path))
                  and any(fnmatch.fnmatchcase(p.name.lower(), pat) for pat in patterns))


@dataclass
class FileAnalysis:
    """ Per-file outcome of a batch run. Exactly one of ``result`` and ``error`` is set. """
    path: str
    #: :py:class:`~.rs274x.ParseResult`
    result: object = None
    #: list of :py:class:`~.errors.ValidationFinding`, ``None`` if validation was not requested
    validation: list = None
    #: :py:class:`~.statistics.StatisticsReport`, ``None`` if not requested
    statistics: object = None
    #: Description of an error that prevented the file from being read at all
    error: str = None

    @property
    def ok(self):
        return self.error is None and not self.result.fatal

    @property
    def document(self):
        return self.result.document if self.result is not None else None


def analyze_file(path, validation=True, statistics=True):
    """ Parse one file and run the per-file analyses on it. Errors that prevent the analysis of this file are captured
    in :py:attr:`FileAnalysis.error` so that one broken file does not take down a batch. """
    try:
        result = parse_file(path)
        return FileAnalysis(str(path), result,
                            validation=validate(result.document) if validation else None,
                            statistics=collect_statistics(result.document) if statistics else None)

    except Exception as e:
        return FileAnalysis(str(path), error=f'{type(e).__name__}: {e}')


def analyze_files(paths, processes=None, validation=True, statistics=True, progress=False):
    """ Analyze several files, one task per file.

    :param paths: iterable of file paths
    :param processes: number of worker processes. ``None`` uses one per CPU, ``1`` runs in the calling process.
    :param bool progress: show a progress bar on stderr
    :returns: list of :py:class:`FileAnalysis` in the order of ``paths``
    """
    paths = [str(p) for p in paths]
    fun = functools.partial(analyze_file, validation=validation, statistics=statistics)

    if processes == 1 or len(paths) <= 1:
        results = map(fun, paths)
        return list(tqdm.tqdm(results, total=len(paths), disable=not progress))

    with multiprocessing.pool.Pool(processes) as pool:
        return list(tqdm.tqdm(pool.imap(fun, paths), total=len(paths), disable=not progress))
