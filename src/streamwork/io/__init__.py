"""
Data acquisition helpers: reading, (de)compression and record parsing.
"""

from streamwork.io.compress import CodecTransform, Compression, compress, decompress
from streamwork.io.data_file import DataFileOptions, infer_compression, infer_format, read_data_file
from streamwork.io.parser import CsvParser, DataFormat, NdjsonParser, detect_separator, parser
from streamwork.io.read import ReadResult, read

__all__ = [
    "CodecTransform",
    "Compression",
    "CsvParser",
    "DataFileOptions",
    "DataFormat",
    "NdjsonParser",
    "ReadResult",
    "compress",
    "decompress",
    "detect_separator",
    "infer_compression",
    "infer_format",
    "parser",
    "read",
    "read_data_file",
]
