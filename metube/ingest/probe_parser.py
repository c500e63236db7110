"""Parser for the sectioned text report printed by ``ffprobe -show_format``.

The report is a sequence of blocks::

    [FORMAT]
    filename=/library/abc.webm
    format_name=matroska,webm
    TAG:title=Holiday
    [/FORMAT]

Every block must be closed by a tag naming the same section, and every
non-empty line inside a block is a ``KEY=VALUE`` pair split on the first
``=``. Anything else is rejected instead of being silently skipped.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from metube.core.errors import ProbeParseError

_OPEN_TAG = re.compile(r"^\[([^/\[\]][^\[\]]*)\]$")
_CLOSE_TAG = re.compile(r"^\[/([^\[\]]+)\]$")


@dataclass(slots=True)
class ProbeSection:
    """One ``[NAME] ... [/NAME]`` block of probe output."""

    name: str
    fields: Dict[str, str] = field(default_factory=dict)

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self.fields.get(key, default)

    def tag(self, *names: str) -> Optional[str]:
        """Return the first ``TAG:<name>`` value present, matching names case-insensitively."""
        tags = {key[4:].lower(): value for key, value in self.fields.items() if key[:4].upper() == "TAG:"}
        for name in names:
            value = tags.get(name.lower())
            if value is not None:
                return value
        return None


def parse_probe_output(text: str) -> List[ProbeSection]:
    """Parse probe output into its sections, in order of appearance.

    Args:
        text: The raw standard output of the probe tool.

    Returns:
        The parsed sections.

    Raises:
        ProbeParseError: If the text is truncated or malformed.
    """
    sections: List[ProbeSection] = []
    current: Optional[ProbeSection] = None
    opened_at = 0

    # Only "\n" ends a line; tag values may hold other line-break characters.
    for number, line in enumerate(text.split("\n"), start=1):
        line = line.removesuffix("\r")
        if not line:
            continue

        closing = _CLOSE_TAG.match(line)
        if closing:
            if current is None:
                raise ProbeParseError(f"closing tag [/{closing.group(1)}] without an open section", line=number)
            if closing.group(1) != current.name:
                raise ProbeParseError(
                    f"closing tag [/{closing.group(1)}] does not match [{current.name}]",
                    line=number,
                )
            sections.append(current)
            current = None
            continue

        opening = _OPEN_TAG.match(line)
        if opening:
            if current is not None:
                raise ProbeParseError(
                    f"section [{opening.group(1)}] opened inside unclosed [{current.name}]",
                    line=number,
                )
            current = ProbeSection(name=opening.group(1))
            opened_at = number
            continue

        if current is None:
            raise ProbeParseError(f"unexpected text outside a section: {line!r}", line=number)

        key, sep, value = line.partition("=")
        if not sep:
            raise ProbeParseError(f"expected KEY=VALUE in [{current.name}]: {line!r}", line=number)
        if not key:
            raise ProbeParseError(f"empty key in [{current.name}]", line=number)
        current.fields[key] = value

    if current is not None:
        raise ProbeParseError(f"section [{current.name}] is never closed (truncated output)", line=opened_at)
    return sections


def find_section(sections: Iterable[ProbeSection], name: str) -> Optional[ProbeSection]:
    for section in sections:
        if section.name == name:
            return section
    return None


__all__ = ["ProbeSection", "parse_probe_output", "find_section"]
