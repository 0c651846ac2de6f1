"""Tests for the approval catalog configuration module."""

import pytest
import yaml

from coursehub.common.config import (
    CatalogConfig,
    parse_category_config,
    parse_config,
    parse_role_config,
    parse_step_config,
    load_config,
    load_typed_config,
)


SAMPLE_CATALOG = {
    "roles": [
        {"name": "Training Manager", "applies_to_all_organizations": True},
        {"name": "HR Partner", "organization_id": "0b4e3f0c-6a55-4d2e-9d4b-3f1f7f0d9c11"},
    ],
    "categories": [
        {
            "name": "Leadership Programs",
            "excuse_window_hours": 24,
            "approvals": [
                {"head": True},
                {"role": "HR Partner"},
                {"role": "Training Manager", "final": True},
            ],
        },
        {"name": "Open Workshops"},
    ],
}


class TestRoleConfig:

    def test_parse_role(self):
        role = parse_role_config({"name": "Training Manager", "applies_to_all_organizations": True})
        assert role.name == "Training Manager"
        assert role.applies_to_all_organizations is True
        assert role.organization_id is None

    def test_role_requires_name(self):
        with pytest.raises(ValueError):
            parse_role_config({"applies_to_all_organizations": True})


class TestCategoryConfig:

    def test_positional_order(self):
        category = parse_category_config(SAMPLE_CATALOG["categories"][0])

        assert [s.order for s in category.approvals] == [1, 2, 3]
        assert category.approvals[0].head is True
        assert category.approvals[2].final is True
        assert category.excuse_window_hours == 24

    def test_explicit_order(self):
        step = parse_step_config({"order": 5, "role": "x"}, position=1)
        assert step.order == 5

    def test_category_without_approvals(self):
        category = parse_category_config({"name": "Open Workshops"})
        assert category.approvals == []
        assert category.excuse_window_hours is None

    def test_category_requires_name(self):
        with pytest.raises(ValueError):
            parse_category_config({"approvals": []})


class TestParseConfig:

    def test_full_catalog(self):
        catalog = parse_config(SAMPLE_CATALOG)

        assert isinstance(catalog, CatalogConfig)
        assert catalog.role_names() == ["Training Manager", "HR Partner"]
        assert [c.name for c in catalog.categories] == ["Leadership Programs", "Open Workshops"]

    def test_unknown_role(self):
        with pytest.raises(ValueError, match="unknown role"):
            parse_config({"categories": [{"name": "x", "approvals": [{"role": "Ghost", "final": True}]}]})

    def test_empty(self):
        catalog = parse_config({})
        assert catalog.roles == []
        assert catalog.categories == []


class TestLoadConfig:

    def test_load_yaml(self, tmp_path):
        path = tmp_path / "catalog.yaml"
        path.write_text(yaml.safe_dump(SAMPLE_CATALOG))

        catalog = load_typed_config(str(path))
        assert len(catalog.categories) == 2

    def test_env_expansion(self, tmp_path, monkeypatch):
        monkeypatch.setenv("HQ_ORG", "7d7c0c9e-1111-4a3b-8b9c-0a0a0a0a0a0a")
        path = tmp_path / "catalog.yaml"
        path.write_text(yaml.safe_dump({"roles": [{"name": "Auditor", "organization_id": "${HQ_ORG}"}]}))

        config = load_config(str(path))
        assert config["roles"][0]["organization_id"] == "7d7c0c9e-1111-4a3b-8b9c-0a0a0a0a0a0a"

    def test_empty_file(self, tmp_path):
        path = tmp_path / "catalog.yaml"
        path.write_text("")
        assert load_config(str(path)) == {}

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(str(tmp_path / "missing.yaml"))

    def test_non_mapping_root(self, tmp_path):
        path = tmp_path / "catalog.yaml"
        path.write_text("- just\n- a list\n")
        with pytest.raises(TypeError):
            load_config(str(path))
