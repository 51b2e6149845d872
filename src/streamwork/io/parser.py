"""
Record parsers for line-oriented data formats.
"""

from __future__ import annotations

import csv
import io
import json
from enum import Enum
from typing import Any

from streamwork.errors import FormatError, ValidationError
from streamwork.stream.compose import merge
from streamwork.stream.roles import BufferedTransform, Transform
from streamwork.stream.split import NEWLINE, split
from streamwork.stream.utils import skip_empty_lines

CSV_SEPARATORS = (",", ";", "\t")


class DataFormat(str, Enum):
    """Supported record formats."""

    CSV = "csv"
    TSV = "tsv"
    NDJSON = "ndjson"
    LINES = "lines"

    @classmethod
    def parse(cls, value: str | DataFormat) -> DataFormat:
        try:
            return cls(value)
        except ValueError:
            raise ValidationError(
                f"Unknown format: {value}",
                field="format",
                expected=[f.value for f in cls],
                actual=value,
            ) from None


def detect_separator(line: str) -> str:
    """Pick the candidate separator that splits ``line`` into the most fields.

    Ties go to the earlier candidate (``,`` before ``;`` before tab).
    """
    best, count = CSV_SEPARATORS[0], 0
    for candidate in CSV_SEPARATORS:
        fields = line.count(candidate) + 1
        if fields > count:
            best, count = candidate, fields
    return best


class CsvParser(BufferedTransform[str, dict[str, Any]]):
    """Turns delimited lines into dicts keyed by the header row.

    The first line is the header. Missing trailing fields are None, extra
    fields are dropped. A line ending inside a quoted field is joined with
    the following lines until the quote closes, and empty lines outside
    quotes are skipped.
    """

    def __init__(self, separator: str | None = None) -> None:
        super().__init__(name="csv")
        self._separator = separator
        self._header: list[str] | None = None
        self._pending: list[str] = []
        self._quotes = 0

    @property
    def separator(self) -> str | None:
        return self._separator

    @property
    def header(self) -> list[str] | None:
        return self._header

    def _fields(self, record: str) -> list[str]:
        assert self._separator is not None
        reader = csv.reader(io.StringIO(record, newline=""), delimiter=self._separator)
        return next(reader, [])

    async def _transform(self, item: str) -> None:
        if not self._pending and not item.rstrip("\r"):
            return
        self._pending.append(item)
        self._quotes += item.count('"')
        if self._quotes % 2:
            return

        record = "\n".join(self._pending)
        self._pending, self._quotes = [], 0
        await self._emit(record)

    async def _flush(self) -> None:
        if self._pending:
            record = "\n".join(self._pending)
            raise FormatError("Unterminated quoted field", format="csv", record=record)

    async def _emit(self, record: str) -> None:
        if self._header is None:
            if self._separator is None:
                self._separator = detect_separator(record)
            self._header = self._fields(record)
            return

        values = self._fields(record)
        await self.push(
            {key: values[i] if i < len(values) else None for i, key in enumerate(self._header)}
        )


class NdjsonParser(BufferedTransform[str, Any]):
    """Parses one JSON document per line."""

    def __init__(self) -> None:
        super().__init__(name="ndjson")

    async def _transform(self, item: str) -> None:
        try:
            value = json.loads(item)
        except json.JSONDecodeError as e:
            raise FormatError(f"Invalid JSON record: {e}", format="ndjson", record=item) from e
        await self.push(value)


def parser(format: str | DataFormat) -> Transform[Any, Any]:
    """Create a transform from raw bytes (or text) to parsed records.

    Input is split on newline bytes and empty lines are skipped, then:

    - ``csv``: dicts keyed by the header row, separator autodetected;
      quoted fields may span lines
    - ``tsv``: like csv with a tab separator
    - ``ndjson``: decoded JSON values
    - ``lines``: the lines themselves

    Raises:
        ValidationError: If the format is unknown
    """
    data_format = DataFormat.parse(format)
    match data_format:
        case DataFormat.CSV:
            return merge(split(NEWLINE), CsvParser())
        case DataFormat.TSV:
            return merge(split(NEWLINE), CsvParser("\t"))
        case DataFormat.NDJSON:
            return merge(merge(split(NEWLINE), skip_empty_lines()), NdjsonParser())
        case _:
            return merge(split(NEWLINE), skip_empty_lines())
