# MIT License
#
# Copyright (c) 2018-2024 Tskit Developers
#
# Permission is hereby granted, free of charge, to any person obtaining a copy
# of this software and associated documentation files (the "Software"), to deal
# in the Software without restriction, including without limitation the rights
# to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
# copies of the Software, and to permit persons to whom the Software is
# furnished to do so, subject to the following conditions:
#
# The above copyright notice and this permission notice shall be included in all
# copies or substantial portions of the Software.
#
# THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
# IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
# FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
# AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
# LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
# OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
# SOFTWARE.
"""
Classes for metadata decoding, encoding and validation.

Metadata is stored as opaque bytes per row. Two ways of turning those bytes
into Python objects are supported:

- a :class:`MetadataSchema` attached to a table, whose codec (``json`` or the
  null raw-bytes codec) encodes and decodes every row of that table;
- classes implementing :class:`MetadataRoundtrip`, which encode themselves
  and are named explicitly when reading, e.g.
  ``table.metadata(row_id, MyMetadata)``.
"""
from __future__ import annotations

import abc
import collections
import copy
import dataclasses
import functools
import json
import pprint
from typing import Any
from typing import Mapping

import jsonschema
import numpy as np

import tstables.exceptions as exceptions
import tstables.util as util


def replace_root_refs(obj):
    if type(obj) is list:
        return [replace_root_refs(j) for j in obj]
    elif type(obj) is dict:
        ret = {k: replace_root_refs(v) for k, v in obj.items()}
        if ret.get("$ref") == "#":
            ret["$ref"] = "#/definitions/root"
        return ret
    else:
        return obj


# Our schema is the Draft7Validator schema with added codec information.
TablesMetadataSchemaValidator = jsonschema.validators.extend(
    jsonschema.validators.Draft7Validator
)
deref_meta_schema: Mapping[str, Any] = copy.deepcopy(
    TablesMetadataSchemaValidator.META_SCHEMA
)
# We need a top-level only required property so we need to rewrite any reference
# to the top-level schema to a copy in a definition.
deref_meta_schema = replace_root_refs(deref_meta_schema)
deref_meta_schema["definitions"]["root"] = copy.deepcopy(deref_meta_schema)
deref_meta_schema["codec"] = {"type": "string"}
deref_meta_schema["required"] = ["codec"]
# For interoperability reasons, force the top-level to be an object or union
# of object and null
deref_meta_schema["properties"]["type"] = {"enum": ["object", ["object", "null"]]}
# Change the schema URL to avoid jsonschema's cache
deref_meta_schema["$schema"] = "http://json-schema.org/draft-o=07/schema#tstables"
TablesMetadataSchemaValidator.META_SCHEMA = deref_meta_schema


class AbstractMetadataCodec(metaclass=abc.ABCMeta):
    """
    Superclass of all MetadataCodecs.
    """

    def __init__(self, schema: Mapping[str, Any]) -> None:
        raise NotImplementedError  # pragma: no cover

    @classmethod
    def modify_schema(self, schema: Mapping) -> Mapping:
        return schema

    @classmethod
    def is_schema_trivial(self, schema: Mapping) -> bool:
        return False

    @abc.abstractmethod
    def encode(self, obj: Any) -> bytes:
        raise NotImplementedError  # pragma: no cover

    @abc.abstractmethod
    def decode(self, encoded: bytes) -> Any:
        raise NotImplementedError  # pragma: no cover


codec_registry = {}


def register_metadata_codec(
    codec_cls: type[AbstractMetadataCodec], codec_id: str
) -> None:
    """
    Register a metadata codec class.
    This function maintains a mapping from metadata codec identifiers used in schemas
    to codec classes. When a codec class is registered, it will replace any class
    previously registered under the same codec identifier, if present.

    :param str codec_id: String to use to refer to the codec in the schema.
    """
    codec_registry[codec_id] = codec_cls


class JSONCodec(AbstractMetadataCodec):
    def default_validator(validator, types, instance, schema):
        # For json codec defaults must be at the top level
        if validator.is_type(instance, "object"):
            for v in instance.get("properties", {}).values():
                for v2 in v.get("properties", {}).values():
                    if "default" in v2:
                        yield jsonschema.ValidationError(
                            "Defaults can only be specified at the top level"
                            " for JSON codec"
                        )

    schema_validator = jsonschema.validators.extend(
        TablesMetadataSchemaValidator, {"default": default_validator}
    )

    @classmethod
    def is_schema_trivial(self, schema: Mapping) -> bool:
        return len(schema.get("properties", {})) == 0

    def __init__(self, schema: Mapping[str, Any]) -> None:
        try:
            self.schema_validator.check_schema(schema)
        except jsonschema.exceptions.SchemaError as ve:
            raise exceptions.MetadataSchemaValidationError(str(ve)) from ve

        # Find default values to fill in on decode, top level only
        self.defaults = {
            key: prop["default"]
            for key, prop in schema.get("properties", {}).items()
            if "default" in prop
        }

    def encode(self, obj: Any) -> bytes:
        try:
            return util.canonical_json(obj).encode()
        except (TypeError, ValueError) as e:
            raise exceptions.MetadataEncodingError(
                f"Could not encode metadata of type {type(obj).__name__}: {e}"
            ) from e

    def decode(self, encoded: bytes) -> Any:
        if len(encoded) == 0:
            result = {}
        else:
            result = json.loads(bytes(encoded).decode())

        # Assign default values
        if isinstance(result, dict):
            return dict(self.defaults, **result)
        else:
            return result


register_metadata_codec(JSONCodec, "json")


class NOOPCodec(AbstractMetadataCodec):
    def __init__(self, schema: Mapping[str, Any]) -> None:
        pass

    def encode(self, data: bytes) -> bytes:
        return bytes(data)

    def decode(self, data: bytes) -> bytes:
        return bytes(data)


def validate_bytes(data: bytes | None) -> None:
    if data is not None and not isinstance(data, (bytes, bytearray, memoryview)):
        raise exceptions.MetadataEncodingError(
            f"If no encoding is set metadata should be bytes, found {type(data)}"
        )


class MetadataSchema:
    """
    Class for validating, encoding and decoding metadata.

    :param dict schema: A dict containing a valid JSONSchema object.
    """

    def __init__(self, schema: Mapping[str, Any] | None) -> None:
        self._schema = schema
        self._unmodified_schema = schema
        self._bypass_validation = False

        if schema is None:
            self._string = ""
            self._validate_row = validate_bytes
            self.encode_row = NOOPCodec({}).encode
            self.decode_row = NOOPCodec({}).decode
            self.empty_value = b""
        else:
            try:
                TablesMetadataSchemaValidator.check_schema(schema)
            except jsonschema.exceptions.SchemaError as ve:
                raise exceptions.MetadataSchemaValidationError(str(ve)) from ve
            try:
                codec_cls = codec_registry[schema["codec"]]
            except KeyError:
                raise exceptions.MetadataSchemaValidationError(
                    f"Unrecognised metadata codec '{schema['codec']}'. "
                    f"Valid options are {str(list(codec_registry.keys()))}."
                )
            # Codecs can modify the schema, for example to set defaults as the validator
            # does not.
            self._schema = codec_cls.modify_schema(schema)
            codec_instance = codec_cls(self._schema)
            self._string = util.canonical_json(self._schema)
            self._validate_row = TablesMetadataSchemaValidator(self._schema).validate
            self._bypass_validation = codec_cls.is_schema_trivial(schema)
            self.encode_row = codec_instance.encode
            self.decode_row = codec_instance.decode

            # If None is allowed by the schema as the top-level type, it gets used even
            # in the presence of default and required values.
            if "type" in self._schema and "null" in self._schema["type"]:
                self.empty_value = None
            else:
                self.empty_value = {}

    def __repr__(self) -> str:
        return self._string

    def __str__(self) -> str:
        if isinstance(self._schema, collections.OrderedDict):
            s = pprint.pformat(dict(self._schema))
        else:
            s = pprint.pformat(self._schema)
        if "\n" in s:
            return f"tstables.MetadataSchema(\n{s}\n)"
        else:
            return f"tstables.MetadataSchema({s})"

    def __eq__(self, other) -> bool:
        return isinstance(other, MetadataSchema) and self._string == other._string

    @property
    def schema(self) -> Mapping[str, Any] | None:
        # Return a copy to avoid unintentional mutation
        return copy.deepcopy(self._unmodified_schema)

    def asdict(self) -> Mapping[str, Any] | None:
        """
        Returns a dict representation of this schema. One possible use of this is to
        modify this dict and then pass it to the ``MetadataSchema`` constructor to create
        a similar schema.
        """
        return self.schema

    def is_null(self) -> bool:
        return self._string == ""

    def validate_and_encode_row(self, row: Any) -> bytes:
        """
        Validate a row (dict) of metadata against this schema and return the encoded
        representation (bytes) using the codec specified in the schema.
        """
        # If the schema is permissive then validation can't fail
        if not self._bypass_validation:
            try:
                self._validate_row(row)
            except jsonschema.exceptions.ValidationError as ve:
                raise exceptions.MetadataValidationError(str(ve)) from ve
        return self.encode_row(row)

    def decode_row(self, row: bytes) -> Any:
        """
        Decode an encoded row (bytes) of metadata, using the codec specifed in the schema
        and return a python dict. Note that no validation of the metadata against the
        schema is performed.
        """
        # Set by __init__
        pass  # pragma: no cover

    def encode_row(self, row: Any) -> bytes:
        """
        Encode a row (dict) of metadata to its binary representation (bytes)
        using the codec specified in the schema. Note that unlike
        :meth:`validate_and_encode_row` no validation against the schema is performed.
        """
        # Set by __init__
        pass  # pragma: no cover

    @staticmethod
    def permissive_json():
        """
        The simplest, permissive JSON schema. Only specifies the JSON codec and has
        no constraints on the properties.
        """
        return MetadataSchema({"codec": "json"})

    @staticmethod
    def null():
        """
        The null schema which defines no properties and results in raw bytes
        being returned on accessing metadata column.
        """
        return MetadataSchema(None)


# Often many tables are processed with identical schemas, so cache them
@functools.lru_cache(maxsize=128)
def parse_metadata_schema(encoded_schema: str) -> MetadataSchema:
    """
    Create a schema object from its string encoding.

    :param str encoded_schema: The string encoded schema.
    :return: A :class:`MetadataSchema`.
    """
    if encoded_schema == "":
        return MetadataSchema.null()
    else:
        try:
            decoded = json.loads(
                encoded_schema, object_pairs_hook=collections.OrderedDict
            )
        except json.decoder.JSONDecodeError:
            raise ValueError(f"Metadata schema is not JSON, found {encoded_schema}")
        return MetadataSchema(decoded)


class MetadataRoundtrip(metaclass=abc.ABCMeta):
    """
    Interface for metadata types that know how to encode themselves. Any
    class implementing ``encode`` and the ``decode`` classmethod can be passed
    to ``add_row_with_metadata`` (as an instance) and to ``metadata`` (as the
    class). Implementations must satisfy ``type(m).decode(m.encode()) == m``.
    """

    @abc.abstractmethod
    def encode(self) -> bytes:
        raise NotImplementedError  # pragma: no cover

    @classmethod
    @abc.abstractmethod
    def decode(cls, encoded: bytes):
        raise NotImplementedError  # pragma: no cover


class JSONMetadata(MetadataRoundtrip):
    """
    Mixin for dataclasses stored as canonical JSON::

        @dataclasses.dataclass
        class PopulationMetadata(tstables.JSONMetadata):
            name: str
    """

    def encode(self) -> bytes:
        return util.canonical_json(dataclasses.asdict(self)).encode()

    @classmethod
    def decode(cls, encoded: bytes):
        return cls(**json.loads(bytes(encoded).decode()))


def encode_metadata(value: Any, schema: MetadataSchema) -> bytes:
    """
    Encode ``value`` for storage. :class:`MetadataRoundtrip` instances encode
    themselves; anything else is validated and encoded by ``schema``.
    Failures raise :class:`MetadataEncodingError`.
    """
    if isinstance(value, MetadataRoundtrip):
        try:
            encoded = value.encode()
        except exceptions.MetadataEncodingError:
            raise
        except Exception as e:
            raise exceptions.MetadataEncodingError(
                f"Could not encode {type(value).__name__}: {e}"
            ) from e
        if not isinstance(encoded, (bytes, bytearray, memoryview)):
            raise exceptions.MetadataEncodingError(
                f"{type(value).__name__}.encode() must return bytes, "
                f"not {type(encoded).__name__}"
            )
        return bytes(encoded)
    return bytes(schema.validate_and_encode_row(value))


def decode_metadata(encoded: bytes, decoder: Any, row_id: int | None = None) -> Any:
    """
    Decode stored metadata bytes with ``decoder``, which may be a
    :class:`MetadataSchema`, an object with a ``decode`` method (for example a
    :class:`MetadataRoundtrip` subclass) or a callable. Any failure is raised
    as :class:`MetadataDecodingError`.
    """
    if isinstance(decoder, MetadataSchema):
        decode = decoder.decode_row
    elif hasattr(decoder, "decode"):
        decode = decoder.decode
    elif callable(decoder):
        decode = decoder
    else:
        raise TypeError(f"Cannot decode metadata with {decoder!r}")
    try:
        return decode(encoded)
    except exceptions.MetadataDecodingError:
        raise
    except Exception as e:
        raise exceptions.MetadataDecodingError(
            f"Could not decode metadata for row {row_id}: {e}", row_id=row_id
        ) from e


class MetadataProvider:
    """
    Abstract superclass of container objects that provide metadata.
    """

    def __init__(self, ll_object):
        self._ll_object = ll_object

    @property
    def metadata_schema(self) -> MetadataSchema:
        """
        The :class:`tstables.MetadataSchema` for this object.
        """
        return parse_metadata_schema(self._ll_object.metadata_schema)

    @metadata_schema.setter
    def metadata_schema(self, schema: MetadataSchema) -> None:
        # Check the schema is a valid schema instance by roundtripping it.
        text_version = repr(schema)
        parse_metadata_schema(text_version)
        self._ll_object.metadata_schema = text_version

    @property
    def metadata(self) -> Any:
        """
        The decoded metadata for this object.
        """
        return self.metadata_schema.decode_row(self.metadata_bytes)

    @metadata.setter
    def metadata(self, metadata: bytes | dict | None) -> None:
        encoded = self.metadata_schema.validate_and_encode_row(metadata)
        self._ll_object.metadata = bytes(encoded)

    @property
    def metadata_bytes(self) -> Any:
        """
        The raw bytes of metadata for this object
        """
        return self._ll_object.metadata

    def assert_equals(self, other: MetadataProvider):
        if self.metadata_schema != other.metadata_schema:
            raise AssertionError(
                f"Metadata schemas differ: self={self.metadata_schema} "
                f"other={other.metadata_schema}"
            )
        if self.metadata != other.metadata:
            raise AssertionError(
                f"Metadata differs: self={self.metadata} " f"other={other.metadata}"
            )


NOTSET = object()  # Sentinel for unset default values


class TableMetadataReader:
    # Mixin for table classes that expose decoded metadata

    @property
    def metadata_schema(self) -> MetadataSchema:
        """
        The :class:`tstables.MetadataSchema` for this table.
        """
        # This isn't as inefficient as it looks because we're using an LRU cache on
        # the parse_metadata_schema function.
        return parse_metadata_schema(self.ll_table.metadata_schema)

    def metadata_vector(self, key, *, dtype=None, default_value=NOTSET):
        """
        Returns a numpy array of metadata values obtained by extracting ``key``
        from each decoded metadata entry, and using ``default_value`` if the key is
        not present. ``key`` may be a list, in which case nested values are returned.
        For instance, ``key = ["a", "x"]`` will return an array of
        ``metadata["a"]["x"]`` values, iterated over rows in this table.
        Rows without metadata are treated as empty.

        :param str key: The name, or a list of names, of metadata entries.
        :param str dtype: The dtype of the result (can usually be omitted).
        :param object default_value: The value to be inserted if the metadata key
            is not present. The default behaviour is to raise ``KeyError`` on
            missing entries.
        """
        if default_value is NOTSET:

            def getter(d, k):
                return d[k]

        else:

            def getter(d, k):
                return (
                    d.get(k, default_value) if isinstance(d, Mapping) else default_value
                )

        keys = key if isinstance(key, list) else [key]
        values = []
        for j in range(self.num_rows):
            md = self.metadata(j)
            values.append(functools.reduce(getter, keys, {} if md is None else md))
        return np.array(values, dtype=dtype)


class TableMetadataWriter(TableMetadataReader):
    # Mixin for tables writing metadata

    @TableMetadataReader.metadata_schema.setter
    def metadata_schema(self, schema: MetadataSchema) -> None:
        if not isinstance(schema, MetadataSchema):
            raise TypeError(
                "Only instances of tstables.MetadataSchema can be assigned to "
                f"metadata_schema, not {type(schema)}"
            )
        self.ll_table.metadata_schema = repr(schema)

    def packset_metadata(self, metadatas):
        """
        Packs the specified list of metadata values and updates the ``metadata``
        and ``metadata_offset`` columns. The length of the metadatas array
        must be equal to the number of rows in the table. ``None`` entries
        mark rows without metadata.

        :param list metadatas: A list of metadata bytes values or None.
        """
        if len(metadatas) != self.num_rows:
            raise ValueError(
                f"Need {self.num_rows} metadata values, got {len(metadatas)}"
            )
        packed, offset = util.pack_bytes([b"" if m is None else m for m in metadatas])
        data = self.asdict()
        data["metadata"] = packed
        data["metadata_offset"] = offset
        data["metadata_present"] = np.array(
            [m is not None for m in metadatas], dtype=bool
        )
        self.set_columns(**data)

    def drop_metadata(self, *, keep_schema=False):
        """
        Drops all metadata in this table, leaving every row without metadata.
        By default, the schema is also cleared, except if ``keep_schema`` is True.

        :param bool keep_schema: True if the current schema should be kept intact.
        """
        self.packset_metadata([None] * self.num_rows)
        if not keep_schema:
            self.metadata_schema = MetadataSchema.null()
