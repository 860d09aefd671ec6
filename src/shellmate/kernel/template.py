"""Command template substitution.

`$NAME` / `${NAME}` expand to the formatted variable value and `$INPUT` /
`${INPUT}` to the caller's input. References to unknown names are left
verbatim so that shell variables (`$HOME`) and agent placeholders
(`$_BUFFER`) survive. Expansion is a single pass: substituted text is never
re-expanded.
"""
from __future__ import annotations

import re
from typing import Mapping

INPUT_NAME = "INPUT"

_REF_RE = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}|\$([A-Za-z_][A-Za-z0-9_]*)")


def substitute(template: str, values: Mapping[str, str], input: str = "") -> str:
    def _replace(m: re.Match) -> str:
        name = m.group(1) or m.group(2)
        if name == INPUT_NAME:
            return input
        if name in values:
            return str(values[name])
        return m.group(0)

    return _REF_RE.sub(_replace, template or "")
