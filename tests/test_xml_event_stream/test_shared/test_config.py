"""Tests for the reader and writer configuration objects."""

import json

import pytest

from xml_event_stream.shared.config import (
    DEFAULT_MAX_ATTRIBUTES,
    DEFAULT_MAX_ENTITY_EXPANSION_DEPTH,
    DEFAULT_MAX_ENTITY_EXPANSION_SIZE,
    DEFAULT_MAX_NAME_LENGTH,
    ConfigError,
    ConfigValidationError,
    EmitterConfig,
    ParserConfig,
)


class TestParserConfig:
    """Test suite for ParserConfig."""

    def test_default_configuration(self):
        """Test default parser configuration values."""
        config = ParserConfig()

        assert config.trim_whitespace is False
        assert config.whitespace_to_characters is False
        assert config.cdata_to_characters is False
        assert config.ignore_comments is True
        assert config.coalesce_characters is True
        assert config.replace_unknown_entity_references is False
        assert dict(config.extra_entities) == {}
        assert config.allow_multiple_root_elements is False

        assert config.max_name_length == DEFAULT_MAX_NAME_LENGTH
        assert config.max_attributes == DEFAULT_MAX_ATTRIBUTES
        assert config.max_entity_expansion_depth == DEFAULT_MAX_ENTITY_EXPANSION_DEPTH
        assert config.max_entity_expansion_size == DEFAULT_MAX_ENTITY_EXPANSION_SIZE
        assert config.max_document_size is None

    def test_configuration_is_immutable(self):
        """Test that fields cannot be reassigned after construction."""
        config = ParserConfig()
        with pytest.raises(AttributeError):
            config.ignore_comments = False

    def test_extra_entities_are_read_only(self):
        """Test that extra_entities is copied into a read-only mapping."""
        entities = {"custom": "VALUE"}
        config = ParserConfig(extra_entities=entities)
        entities["other"] = "changed"

        assert dict(config.extra_entities) == {"custom": "VALUE"}
        with pytest.raises(TypeError):
            config.extra_entities["x"] = "y"

    def test_extra_entities_validation(self):
        """Test that entity names and values are checked."""
        with pytest.raises(ConfigValidationError, match="not a valid XML name"):
            ParserConfig(extra_entities={"1bad": "x"})
        with pytest.raises(ConfigValidationError, match="must be a string"):
            ParserConfig(extra_entities={"good": 1})

    @pytest.mark.parametrize("field_name", [
        "max_name_length",
        "max_attributes",
        "max_entity_expansion_depth",
        "max_entity_expansion_size",
    ])
    def test_limits_must_be_positive(self, field_name):
        """Test that every limit rejects zero and negative values."""
        for value in (0, -1):
            with pytest.raises(ConfigValidationError, match=f"{field_name} must be > 0") as info:
                ParserConfig(**{field_name: value})
            assert info.value.field_name == field_name

    def test_max_document_size_accepts_none(self):
        """Test that the document size limit is optional."""
        assert ParserConfig(max_document_size=None).max_document_size is None
        assert ParserConfig(max_document_size=10).max_document_size == 10
        with pytest.raises(ConfigValidationError, match="or None"):
            ParserConfig(max_document_size=0)

    def test_override_creates_modified_copy(self):
        """Test override leaves the original untouched."""
        config = ParserConfig()
        modified = config.override(ignore_comments=False, max_attributes=8)

        assert config.ignore_comments is True
        assert modified.ignore_comments is False
        assert modified.max_attributes == 8

    def test_override_unknown_field_suggests_names(self):
        """Test that a misspelled option is reported with suggestions."""
        with pytest.raises(ConfigValidationError) as info:
            ParserConfig().override(ignore_coments=False)

        assert info.value.field_name == "ignore_coments"
        assert "ignore_comments" in info.value.suggestions

    def test_presets(self):
        """Test the preset class methods."""
        strict = ParserConfig.strict()
        assert strict.ignore_comments is False
        assert strict.coalesce_characters is False

        assert ParserConfig.fragment().allow_multiple_root_elements is True

        hardened = ParserConfig.hardened()
        assert hardened.max_entity_expansion_depth < DEFAULT_MAX_ENTITY_EXPANSION_DEPTH
        assert hardened.max_entity_expansion_size < DEFAULT_MAX_ENTITY_EXPANSION_SIZE
        assert hardened.max_document_size is not None

    def test_dict_and_json_round_trip(self):
        """Test serialization to and from dict and JSON."""
        config = ParserConfig(extra_entities={"custom": "VALUE"}, trim_whitespace=True)

        data = config.to_dict()
        assert data["extra_entities"] == {"custom": "VALUE"}
        assert ParserConfig.from_dict(data) == config

        restored = ParserConfig.from_json(config.to_json())
        assert restored == config
        assert json.loads(config.to_json())["trim_whitespace"] is True

    def test_from_json_rejects_bad_input(self):
        """Test that invalid JSON and non-object JSON are rejected."""
        with pytest.raises(ConfigValidationError, match="Invalid configuration JSON"):
            ParserConfig.from_json("{not json")
        with pytest.raises(ConfigValidationError, match="must be an object"):
            ParserConfig.from_json("[1, 2]")

    def test_from_dict_rejects_unknown_keys(self):
        """Test that unknown keys are configuration errors."""
        with pytest.raises(ConfigError):
            ParserConfig.from_dict({"no_such_option": True})

    def test_configurations_are_hashable(self):
        """Test that configs can be used as dictionary keys."""
        assert hash(ParserConfig()) == hash(ParserConfig())


class TestEmitterConfig:
    """Test suite for EmitterConfig."""

    def test_default_configuration(self):
        """Test default emitter configuration values."""
        config = EmitterConfig()

        assert config.perform_indent is False
        assert config.indent_string == "  "
        assert config.line_separator == "\n"
        assert config.pad_self_closing is True
        assert config.write_document_declaration is True
        assert config.normalize_empty_elements is True
        assert config.autogenerate_namespace_prefixes is False
        assert config.passthrough_markup is False
        assert config.autopad_comments is True
        assert config.cdata_to_characters is False
        assert config.perform_escaping is True
        assert config.allow_multiple_root_elements is False

    def test_indent_string_must_be_whitespace(self):
        """Test indent string validation."""
        assert EmitterConfig(indent_string="\t").indent_string == "\t"
        assert EmitterConfig(indent_string="").indent_string == ""
        with pytest.raises(ConfigValidationError, match="indent_string") as info:
            EmitterConfig(indent_string="--")
        assert info.value.suggestions

    def test_line_separator_validation(self):
        """Test that the line separator must be non-empty whitespace."""
        assert EmitterConfig(line_separator="\r\n").line_separator == "\r\n"
        with pytest.raises(ConfigValidationError, match="line_separator"):
            EmitterConfig(line_separator="")
        with pytest.raises(ConfigValidationError, match="line_separator"):
            EmitterConfig(line_separator="<br>")

    def test_presets(self):
        """Test the preset class methods."""
        assert EmitterConfig.pretty().perform_indent is True

        compact = EmitterConfig.compact()
        assert compact.write_document_declaration is False
        assert compact.pad_self_closing is False
        assert compact.autopad_comments is False

    def test_json_round_trip(self):
        """Test JSON serialization of the emitter configuration."""
        config = EmitterConfig.pretty().override(indent_string="\t")
        assert EmitterConfig.from_json(config.to_json()) == config
