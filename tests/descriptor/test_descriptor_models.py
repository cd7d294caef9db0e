"""Tests for descriptor pydantic models."""

import pydantic
import pytest

from clusterspine.descriptor.models import (
    ImageMode,
    ImageSpec,
    LayerSpec,
    SessionTemplateSpec,
)


def _template(boot_sets):
    return SessionTemplateSpec.model_validate(
        {
            "name": "t1",
            "image": {"ims": {"name": "img"}},
            "configuration": "cfg",
            "bos_parameters": {"boot_sets": boot_sets},
        }
    )


class TestLayerSpec:
    def test_exactly_one_source(self):
        with pytest.raises(pydantic.ValidationError, match="exactly one"):
            LayerSpec.model_validate(
                {"git": {"url": "u", "branch": "main"}, "product": {"name": "cos", "version": "1"}}
            )

    def test_git_needs_one_revision(self):
        with pytest.raises(pydantic.ValidationError):
            LayerSpec.model_validate({"git": {"url": "u", "branch": "main", "commit": "abc"}})

    def test_default_playbook(self):
        assert LayerSpec.model_validate({"git": {"url": "u", "commit": "abc"}}).playbook == "site.yml"


class TestImageSpec:
    @pytest.mark.parametrize(
        "data,mode",
        [
            ({"base": {"ims": {"id": "x"}}, "configuration": "cfg"}, ImageMode.BUILD),
            ({"base": {"image_ref": "r"}, "configuration": "cfg"}, ImageMode.BUILD),
            ({"base": {"image_ref": "r"}}, ImageMode.REFERENCE),
            ({"base": {"ims": {"name": "x"}}}, ImageMode.LOOKUP),
            ({"base": {"product": {"name": "cos", "version": "1"}}}, ImageMode.LOOKUP),
        ],
    )
    def test_mode(self, data, mode):
        assert ImageSpec.model_validate({"name": "img", **data}).mode is mode

    def test_base_requires_exactly_one(self):
        with pytest.raises(pydantic.ValidationError):
            ImageSpec.model_validate({"name": "img", "base": {}})

    def test_recipe_base_not_supported(self):
        with pytest.raises(pydantic.ValidationError):
            ImageSpec.model_validate({"name": "img", "base": {"ims": {"name": "x", "type": "recipe"}}})

    def test_product_prefix_filter(self):
        spec = ImageSpec.model_validate(
            {"name": "img", "base": {"product": {"name": "cos", "version": "1", "filter": {"prefix": "cray-"}}}}
        )
        assert spec.base.product.name_prefix == "cray-"


class TestSessionTemplateSpec:
    def test_node_groups_union_in_order(self):
        template = _template(
            {
                "compute": {"node_groups": ["zinal", "Compute"]},
                "uan": {"node_groups": ["Application", "zinal"]},
            }
        )
        assert template.node_groups == ["zinal", "Compute", "Application"]

    def test_requires_a_node_group(self):
        with pytest.raises(pydantic.ValidationError, match="no node group"):
            _template({"compute": {"rootfs_provider": "cpss3"}})

    def test_primary_boot_set_options(self):
        template = _template(
            {"compute": {"node_groups": ["zinal"], "rootfs_provider": "cpss3", "custom_option": "x"}}
        )
        name, boot_set = template.primary_boot_set()
        assert name == "compute"
        assert boot_set.options() == {"rootfs_provider": "cpss3", "custom_option": "x"}
