"""SaveSmith formats package - save-data codecs."""
from .sav import (
    SCHEMAS, CategorySchema, SchemaRegistry, register_schema,
    Decoder, DecodeResult, decode, Encoder, encode,
    ExportOptions, to_json,
)

__all__ = [
    'SCHEMAS', 'CategorySchema', 'SchemaRegistry', 'register_schema',
    'Decoder', 'DecodeResult', 'decode', 'Encoder', 'encode',
    'ExportOptions', 'to_json',
]
