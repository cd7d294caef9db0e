"""Tests for descriptor loading and tag substitution."""

from pathlib import Path

import pytest
import yaml

from clusterspine.core.errors import ValidationError
from clusterspine.descriptor.loader import (
    TAG_PLACEHOLDER,
    load_descriptor,
    parse_descriptor,
    substitute_tag,
)


class TestSubstituteTag:
    """Placeholder replacement."""

    def test_placeholder_replaced(self):
        assert substitute_tag("cluster-__DATE__", "20240101") == "cluster-20240101"

    def test_name_without_placeholder_is_tag_independent(self):
        assert substitute_tag("cluster", "20240101") == substitute_tag("cluster", "20250101") == "cluster"

    def test_every_occurrence_replaced(self):
        assert substitute_tag("__DATE__-x-__DATE__", "t") == "t-x-t"

    def test_nested_structures(self):
        value = {"name": "a-__DATE__", "items": ["b-__DATE__", 3, None], "flag": True}
        assert substitute_tag(value, "t") == {"name": "a-t", "items": ["b-t", 3, None], "flag": True}

    def test_keys_untouched(self):
        assert substitute_tag({"__DATE__": "v"}, "t") == {"__DATE__": "v"}

    def test_placeholder_constant(self):
        assert TAG_PLACEHOLDER == "__DATE__"


class TestParseDescriptor:
    """Document → Descriptor."""

    def test_tag_applied_to_mutable_sections(self, cluster_document, tag):
        descriptor = parse_descriptor(cluster_document, tag)
        assert descriptor.configurations[0].name == f"zinal-cos-config-{tag}"
        assert descriptor.images[0].name == f"zinal-cos-{tag}"
        assert descriptor.images[0].configuration == f"zinal-cos-config-{tag}"
        assert descriptor.session_templates[0].name == f"zinal-cos-template-{tag}"

    def test_hardware_passed_through_unmodified(self, cluster_document, tag):
        cluster_document["hardware"] = [{"pattern": "x-__DATE__"}]
        descriptor = parse_descriptor(cluster_document, tag)
        assert descriptor.hardware == [{"pattern": "x-__DATE__"}]

    def test_input_not_mutated(self, cluster_document, tag):
        parse_descriptor(cluster_document, tag)
        assert cluster_document["configurations"][0]["name"] == "zinal-cos-config-__DATE__"

    def test_unknown_top_level_key_ignored(self, cluster_document, tag):
        cluster_document["something_else"] = {"a": 1}
        parse_descriptor(cluster_document, tag)

    def test_empty_document(self, tag):
        descriptor = parse_descriptor(None, tag)
        assert descriptor.configurations == []
        assert descriptor.images == []

    def test_non_mapping_rejected(self, tag):
        with pytest.raises(ValidationError, match="mapping"):
            parse_descriptor(["a"], tag)

    def test_schema_error_names_location(self, cluster_document, tag):
        del cluster_document["configurations"][0]["layers"]
        with pytest.raises(ValidationError) as exc_info:
            parse_descriptor(cluster_document, tag)
        assert exc_info.value.field == "configurations.0.layers"


class TestLoadDescriptor:
    def test_load_file(self, tmp_path: Path, cluster_document, tag):
        path = tmp_path / "sat.yaml"
        path.write_text(yaml.safe_dump(cluster_document))
        descriptor = load_descriptor(path, tag)
        assert len(descriptor.session_templates) == 1

    def test_missing_file(self, tmp_path: Path, tag):
        with pytest.raises(ValidationError, match="not found"):
            load_descriptor(tmp_path / "nope.yaml", tag)

    def test_invalid_yaml(self, tmp_path: Path, tag):
        path = tmp_path / "bad.yaml"
        path.write_text("configurations: [\n")
        with pytest.raises(ValidationError, match="Invalid YAML"):
            load_descriptor(path, tag)
