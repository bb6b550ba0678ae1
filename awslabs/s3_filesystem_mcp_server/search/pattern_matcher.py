# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
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

"""Glob matching and fixed-prefix extraction for object keys.

Keys are treated as ``/``-separated paths:

* ``*`` matches any run of characters within one segment
* ``**`` as a whole segment matches zero or more segments
* ``?`` matches exactly one character within a segment
* ``[abc]``, ``[a-z]``, ``[!a-z]`` and ``[^a-z]`` are character classes
* ``{a,b}`` alternatives, which may nest
* ``\\`` escapes the next character

Dot-prefixed segments are matched like any other segment.
"""

import re
from awslabs.s3_filesystem_mcp_server.consts import PATH_SEPARATOR
from functools import lru_cache
from typing import List, Optional, Pattern


GLOB_METACHARACTERS = frozenset('*?[{')

# Backslash escapes stop prefix extraction too, so an escaped literal never
# widens the prefix past what the matcher would accept.
_PREFIX_STOP_CHARACTERS = GLOB_METACHARACTERS | {'\\'}

_GLOBSTAR_PREFIX = '**' + PATH_SEPARATOR


def has_glob(segment: str) -> bool:
    """Check whether a pattern or segment contains any glob metacharacter."""
    return any(c in GLOB_METACHARACTERS for c in segment)


def extract_fixed_prefix(pattern: str) -> str:
    """Extract the literal leading directories of a glob pattern.

    Segments are accumulated until the first one containing a glob
    metacharacter. A literal segment only joins the prefix when another segment
    follows it, so the final segment of a fully literal pattern (the file name)
    is never included:

    >>> extract_fixed_prefix('a/b/*.ts')
    'a/b/'
    >>> extract_fixed_prefix('**/*.ts')
    ''
    >>> extract_fixed_prefix('a/b/c.ts')
    'a/b/'
    >>> extract_fixed_prefix('a/b/')
    'a/b/'

    Args:
        pattern: Glob pattern

    Returns:
        The literal directory prefix ending in ``/``, or an empty string
    """
    segments = pattern.split(PATH_SEPARATOR)
    literal: List[str] = []

    for segment in segments[:-1]:
        if any(c in _PREFIX_STOP_CHARACTERS for c in segment):
            break
        literal.append(segment)

    if not literal:
        return ''
    return PATH_SEPARATOR.join(literal) + PATH_SEPARATOR


def matches(pattern: str, path: str, case_sensitive: bool = True) -> bool:
    """Test a path against a glob pattern.

    Args:
        pattern: Glob pattern
        path: Path relative to the pattern's root
        case_sensitive: Whether letters must match exactly

    Returns:
        True if the whole path matches the pattern
    """
    basename_literal = _basename_literal(pattern)
    if basename_literal is not None:
        basename = path.rsplit(PATH_SEPARATOR, 1)[-1]
        if case_sensitive:
            return basename == basename_literal
        return basename.casefold() == basename_literal.casefold()

    return compile_glob(pattern, case_sensitive).fullmatch(path) is not None


@lru_cache(maxsize=1024)
def compile_glob(pattern: str, case_sensitive: bool = True) -> Pattern[str]:
    """Compile a glob pattern into an anchored regular expression."""
    flags = re.DOTALL
    if not case_sensitive:
        flags |= re.IGNORECASE
    return re.compile(_translate(pattern), flags)


@lru_cache(maxsize=1024)
def _basename_literal(pattern: str) -> Optional[str]:
    """Return ``name`` for patterns shaped exactly like ``**/name``, else None."""
    if not pattern.startswith(_GLOBSTAR_PREFIX):
        return None
    name = pattern[len(_GLOBSTAR_PREFIX) :]
    if not name or PATH_SEPARATOR in name or '\\' in name or has_glob(name):
        return None
    return name


def _translate(pattern: str) -> str:
    """Translate a glob pattern into a regular expression body."""
    parts: List[str] = []
    i = 0
    n = len(pattern)

    while i < n:
        c = pattern[i]

        if c == '*':
            j = i
            while j < n and pattern[j] == '*':
                j += 1
            at_segment_start = i == 0 or pattern[i - 1] == PATH_SEPARATOR
            at_segment_end = j == n or pattern[j] == PATH_SEPARATOR
            if j - i >= 2 and at_segment_start and at_segment_end:
                if j == n:
                    parts.append('.*')
                    i = j
                else:
                    # Globstar plus its separator: zero or more whole segments
                    parts.append('(?:[^/]*/)*')
                    i = j + 1
            else:
                parts.append('[^/]*')
                i = j

        elif c == '?':
            parts.append('[^/]')
            i += 1

        elif c == '[':
            end = _find_class_end(pattern, i)
            if end < 0:
                parts.append(re.escape(c))
                i += 1
            else:
                translated = _translate_class(pattern[i + 1 : end])
                parts.append(translated or re.escape(pattern[i : end + 1]))
                i = end + 1

        elif c == '{':
            end = _find_brace_end(pattern, i)
            alternatives = _split_alternatives(pattern[i + 1 : end]) if end >= 0 else []
            if len(alternatives) < 2:
                # Unterminated or single-option braces are literal
                parts.append(re.escape(c))
                i += 1
            else:
                parts.append('(?:' + '|'.join(_translate(alt) for alt in alternatives) + ')')
                i = end + 1

        elif c == '\\' and i + 1 < n:
            parts.append(re.escape(pattern[i + 1]))
            i += 2

        else:
            parts.append(re.escape(c))
            i += 1

    return ''.join(parts)


def _find_class_end(pattern: str, start: int) -> int:
    """Find the index of the ``]`` closing the class opened at ``start``, or -1."""
    j = start + 1
    n = len(pattern)
    if j < n and pattern[j] in '!^':
        j += 1
    # A leading ']' is a member of the class, not its end
    if j < n and pattern[j] == ']':
        j += 1
    while j < n and pattern[j] != ']':
        j += 1
    return j if j < n else -1


def _translate_class(body: str) -> Optional[str]:
    """Translate a class body, or return None when it is not a valid class."""
    negate = bool(body) and body[0] in '!^'
    if negate:
        body = body[1:]
    members = ''.join(ch if ch == '-' else re.escape(ch) for ch in body)
    translated = f'[^/{members}]' if negate else f'[{members}]'
    try:
        re.compile(translated)
    except re.error:
        # Inverted ranges such as [z-a] match literally
        return None
    return translated


def _find_brace_end(pattern: str, start: int) -> int:
    """Find the index of the ``}`` closing the brace opened at ``start``, or -1."""
    depth = 0
    j = start
    n = len(pattern)
    while j < n:
        ch = pattern[j]
        if ch == '\\':
            j += 2
            continue
        if ch == '{':
            depth += 1
        elif ch == '}':
            depth -= 1
            if depth == 0:
                return j
        j += 1
    return -1


def _split_alternatives(body: str) -> List[str]:
    """Split brace contents on top-level commas."""
    alternatives = []
    depth = 0
    current: List[str] = []
    j = 0
    while j < len(body):
        ch = body[j]
        if ch == '\\' and j + 1 < len(body):
            current.append(body[j : j + 2])
            j += 2
            continue
        if ch == '{':
            depth += 1
        elif ch == '}':
            depth -= 1
        elif ch == ',' and depth == 0:
            alternatives.append(''.join(current))
            current = []
            j += 1
            continue
        current.append(ch)
        j += 1
    alternatives.append(''.join(current))
    return alternatives
