"""Fixed-width fixture file parser.

A fixture file describes the rows of one entity kind. The first line is a
header whose tokens name the fields; the column at which each token starts is
where that field's values start on every following line::

    Code   Name
    ABC    Acme Pty
    -- comments and blank lines are ignored
    XYZ    Xylophones Inc

Values are sliced by position rather than split on a delimiter, so they may
contain spaces as long as they stay out of the next field's column. Tabs
break the alignment and are rejected.
"""

from __future__ import annotations

import re
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType

from FixtureSeed.errors import FormatError

_FIELD_TOKEN = re.compile(r"[\w.-]+")
# Only CR, LF and CRLF end a line; other Unicode breaks belong to the value
_LINE_BREAK = re.compile(r"\r\n|\r|\n")
COMMENT_PREFIX = "--"


class FixtureRow(Mapping[str, str]):
    """One data line, mapping each field name to its trimmed value in column order."""

    __slots__ = ("fields", "line_number")

    def __init__(self, fields: Mapping[str, str], line_number: int = 0):
        self.fields: Mapping[str, str] = MappingProxyType(dict(fields))
        self.line_number = line_number

    def __getitem__(self, field_name: str) -> str:
        return self.fields[field_name]

    def __iter__(self) -> Iterator[str]:
        return iter(self.fields)

    def __len__(self) -> int:
        return len(self.fields)

    def __repr__(self) -> str:
        return f"FixtureRow({dict(self.fields)!r}, line_number={self.line_number})"


@dataclass(eq=False)
class FixtureFile:
    entity_name: str
    field_names: list[str] = field(default_factory=list)
    field_positions: list[int] = field(default_factory=list)
    rows: list[FixtureRow] = field(default_factory=list)
    dependencies: list[FixtureFile] = field(default_factory=list)
    path: Path | None = None

    def add_dependency(self, other: FixtureFile) -> None:
        if other is not self and other not in self.dependencies:
            self.dependencies.append(other)

    def __str__(self) -> str:
        return self.entity_name

    def __repr__(self) -> str:
        return f"FixtureFile({self.entity_name!r}, fields={self.field_names!r}, rows={len(self.rows)})"


def parse_header(header: str, *, path: Path | None = None) -> tuple[list[str], list[int]]:
    """Return the field names of a header line and the column each starts at."""
    names: list[str] = []
    positions: list[int] = []
    for match in _FIELD_TOKEN.finditer(header):
        if match.group() in names:
            raise FormatError(f"Duplicate field {match.group()!r} in header", path=path, line_number=1)
        names.append(match.group())
        positions.append(match.start())
    if not names:
        raise FormatError("Fixture header has no fields", path=path, line_number=1)
    return names, positions


def slice_row(line: str, field_names: list[str], field_positions: list[int]) -> dict[str, str]:
    values: dict[str, str] = {}
    for i, name in enumerate(field_names):
        start = field_positions[i]
        end = field_positions[i + 1] if i + 1 < len(field_positions) else len(line)
        # Slicing past the end of the line yields "" for short rows
        values[name] = line[start:end].strip()
    return values


def parse_fixture_text(text: str, entity_name: str, *, path: Path | None = None) -> FixtureFile:
    """Parse the contents of one fixture file.

    Args:
        text: Full file contents, header first.
        entity_name: Entity kind the rows describe.
        path: Source path, used in error messages only.

    Raises:
        FormatError: The header is empty or repeats a field, or a data line
            contains a tab.
    """
    lines = _LINE_BREAK.split(text)
    if lines and lines[-1] == "":
        lines.pop()
    if not lines:
        raise FormatError("Fixture file is empty", path=path)
    names, positions = parse_header(lines[0], path=path)
    fixture = FixtureFile(
        entity_name=entity_name, field_names=names, field_positions=positions, path=path
    )

    for line_number, line in enumerate(lines[1:], start=2):
        if not line.strip() or line.startswith(COMMENT_PREFIX):
            continue
        if "\t" in line:
            where = path.name if path is not None else entity_name
            raise FormatError(f"Tabs found in {where}", path=path, line_number=line_number)
        fixture.rows.append(FixtureRow(slice_row(line, names, positions), line_number))
    return fixture


def load_fixture_file(path: Path, entity_name: str | None = None) -> FixtureFile:
    """Read and parse a UTF-8 fixture file; the entity name defaults to the file stem."""
    path = Path(path)
    text = path.read_text(encoding="utf-8-sig")
    return parse_fixture_text(text, entity_name or path.stem, path=path)
