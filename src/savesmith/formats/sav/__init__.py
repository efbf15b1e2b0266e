"""Schema-driven .sav codec: value model, schema descriptors, decoder, encoder."""
from .values import (
    ValueKind, Layout, Value,
    IntegerValue, FloatValue, BoolValue, StringValue, BlobValue,
    SequenceValue, RecordValue, UnparsedValue,
    kind_of, render, describe, resolve, walk,
)
from .schema import (
    FieldSpec, IntField, FloatField, BoolField, StringField, BlobField,
    RecordField, SequenceField, VariantField, PaddingField, AlignField, MagicField,
    CategorySchema, SchemaRegistry, SCHEMAS, register_schema,
)
from .decoder import Decoder, DecodeResult, decode, TRAILING_KEY
from .encoder import Encoder, encode, encode_leaf
from .export import ExportOptions, to_json
from .categories import (
    SLOT_INFO, PLAYER_DATA, MISSION_DATA, STATS_DATA, WORLD_DATA,
    CATEGORY_FILES, KNOWN_CATEGORIES,
)

__all__ = [
    'ValueKind', 'Layout', 'Value',
    'IntegerValue', 'FloatValue', 'BoolValue', 'StringValue', 'BlobValue',
    'SequenceValue', 'RecordValue', 'UnparsedValue',
    'kind_of', 'render', 'describe', 'resolve', 'walk',
    'FieldSpec', 'IntField', 'FloatField', 'BoolField', 'StringField', 'BlobField',
    'RecordField', 'SequenceField', 'VariantField', 'PaddingField', 'AlignField', 'MagicField',
    'CategorySchema', 'SchemaRegistry', 'SCHEMAS', 'register_schema',
    'Decoder', 'DecodeResult', 'decode', 'TRAILING_KEY',
    'Encoder', 'encode', 'encode_leaf',
    'ExportOptions', 'to_json',
    'SLOT_INFO', 'PLAYER_DATA', 'MISSION_DATA', 'STATS_DATA', 'WORLD_DATA',
    'CATEGORY_FILES', 'KNOWN_CATEGORIES',
]
