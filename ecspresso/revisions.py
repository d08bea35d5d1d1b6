"""Task definition revisions and their listings as JSON, TSV or a table."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Sequence

from .jsonapi import marshal_json_for_api

_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1
_INTEGER = re.compile(r"[+-]?[0-9]+")
_NUMBER = re.compile(r"-?(?:\d{1,3}(?:,\d{3})*|\d+)(?:\.\d+)?")


@dataclass(frozen=True)
class Revision:
    """A task definition revision and how it is in use."""

    name: str
    in_use: str = ""

    def cols(self) -> list[str]:
        """Return the table cells of this revision."""
        return [self.name, self.in_use]


class Revisions(list):
    """A list of revisions that can be written in several formats."""

    def header(self) -> list[str]:
        """Return the column titles."""
        return ["Name", "In Use"]

    def output_json(self, stream: Any) -> None:
        """Write one JSON document per revision."""
        for rev in self:
            stream.write(marshal_json_for_api(rev))

    def output_tsv(self, stream: Any) -> None:
        """Write one tab-separated line per revision."""
        for rev in self:
            stream.write("\t".join(rev.cols()) + "\n")

    def output_table(self, stream: Any) -> None:
        """Write the revisions as a table with side borders."""
        stream.write(_render_table(self.header(), [rev.cols() for rev in self]))


def _center(text: str, width: int) -> str:
    gap = width - len(text)
    left = gap // 2
    return " " * left + text + " " * (gap - left)


def _align(text: str, width: int) -> str:
    if _NUMBER.fullmatch(text):
        return text.rjust(width)
    return text.ljust(width)


def _render_table(header: Sequence[str], rows: Sequence[Sequence[str]]) -> str:
    titles = [h.replace("_", " ").upper() for h in header]
    widths = [len(t) for t in titles]
    for row in rows:
        widths = [max(w, len(cell)) for w, cell in zip(widths, row)]

    def line(cells: list[str]) -> str:
        return "|" + "|".join(f" {c} " for c in cells) + "|\n"

    out = [line([_center(t, w) for t, w in zip(titles, widths)])]
    out.append("+" + "+".join("-" * (w + 2) for w in widths) + "+\n")
    out.extend(line([_align(c, w) for c, w in zip(row, widths)]) for row in rows)
    return "".join(out)


def parse_revision_spec(family: str, spec: str) -> str | None:
    """Turn a revision given by the user into a task definition name.

    ``latest`` names the family itself and a number names that revision.
    ``current`` returns None: it has to be resolved from the running service.
    """
    if spec == "current":
        return None
    if spec == "latest":
        return family
    if not _INTEGER.fullmatch(spec):
        raise ValueError(f"invalid revision: {spec}")
    number = int(spec)
    if not _INT64_MIN <= number <= _INT64_MAX:
        raise ValueError(f"invalid revision: {spec}")
    return f"{family}:{number}"