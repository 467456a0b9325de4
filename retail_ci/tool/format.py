"""Library for formatting command output."""

from abc import ABC, abstractmethod
import json
import sys
from typing import Any, Generator, TextIO

import yaml


PADDING = 4


def column_format_string(rows: list[list[str]]) -> str:
    """Produce a format string based on max width of columns."""
    num_cols = len(rows[0])
    widths = [0] * num_cols
    for row in rows:
        for i, value in enumerate(row):
            widths[i] = max(widths[i], len(str(value)))
    return "".join([f"{{:{w+PADDING}}}" for w in widths])


def format_columns(
    headers: list[str], rows: list[list[str]]
) -> Generator[str, None, None]:
    """Yield the rows aligned in columns, headers first."""
    data = [headers] + rows
    format_string = column_format_string(data)
    for row in data:
        yield format_string.format(*[str(x) for x in row]).rstrip()


class Formatter(ABC):
    """A formatter that prints command results."""

    @abstractmethod
    def format(self, data: Any) -> Generator[str, None, None]:
        """Format the data objects."""

    def print(self, data: Any, file: TextIO | None = None) -> None:
        """Print the data objects, to stdout unless a file is given."""
        for line in self.format(data):
            print(line, file=file or sys.stdout)


class PrintFormatter(Formatter):
    """A formatter that prints human readable columns for a list of records."""

    def __init__(self, keys: list[str]) -> None:
        """Initialize the PrintFormatter with the record keys to print."""
        self._keys = keys

    def format(self, data: list[dict[str, Any]]) -> Generator[str, None, None]:
        """Format the data objects."""
        if not data:
            return
        rows = [[str(row.get(key, "")) for key in self._keys] for row in data]
        cols = [col.upper() for col in self._keys]
        yield from format_columns(cols, rows)


class YamlFormatter(Formatter):
    """A formatter that prints a yaml document."""

    def format(self, data: Any) -> Generator[str, None, None]:
        """Format the data objects."""
        content = yaml.dump(data, sort_keys=False, explicit_start=True)
        yield from content.rstrip("\n").split("\n")


class JsonFormatter(Formatter):
    """A formatter that prints json output."""

    def format(self, data: Any) -> Generator[str, None, None]:
        """Format the data objects."""
        yield from json.dumps(data, indent=4, sort_keys=False).split("\n")


def struct_formatter(output: str) -> Formatter:
    """Return the formatter for a structured output flag value."""
    if output == "json":
        return JsonFormatter()
    return YamlFormatter()
