"""Tests for TOC plans loaded from disk."""

import json

import pytest

from docport.exceptions import ConfigurationError
from docport.services.toc_plan import StaticTocPlanner


class TestStaticTocPlanner:
    """Tests for YAML and JSON plan files."""

    def test_yaml_plan(self, temp_dir):
        plan_file = temp_dir / "plan.yaml"
        plan_file.write_text(
            "file_mapping:\n"
            "  Topics/intro.htm: guide/intro.adoc\n"
            "folder_structure:\n"
            "  - path: guide\n"
            "    title: Guide\n",
            encoding="utf-8",
        )
        planner = StaticTocPlanner(plan_file)

        plan = planner.create_plan(planner.discover(temp_dir), "asciidoc")

        assert plan.file_mapping == {"Topics/intro.htm": "guide/intro.adoc"}
        assert plan.folder_structure[0].title == "Guide"

    def test_json_plan(self, temp_dir):
        plan_file = temp_dir / "plan.json"
        plan_file.write_text(json.dumps({"file_mapping": {"a.htm": "b.md"}}), encoding="utf-8")
        planner = StaticTocPlanner(plan_file)

        plan = planner.create_plan(planner.discover(temp_dir), "markdown")

        assert plan.file_mapping == {"a.htm": "b.md"}
        assert plan.folder_structure == []

    def test_missing_file_has_no_structures(self, temp_dir):
        assert StaticTocPlanner(temp_dir / "missing.yaml").discover(temp_dir) == []

    def test_empty_file_has_no_structures(self, temp_dir):
        plan_file = temp_dir / "plan.yaml"
        plan_file.write_text("", encoding="utf-8")
        assert StaticTocPlanner(plan_file).discover(temp_dir) == []

    def test_invalid_yaml(self, temp_dir):
        plan_file = temp_dir / "plan.yaml"
        plan_file.write_text("file_mapping: [unclosed", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            StaticTocPlanner(plan_file).discover(temp_dir)

    def test_not_a_mapping(self, temp_dir):
        plan_file = temp_dir / "plan.yaml"
        plan_file.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            StaticTocPlanner(plan_file).discover(temp_dir)

    def test_invalid_schema(self, temp_dir):
        plan_file = temp_dir / "plan.json"
        plan_file.write_text(json.dumps({"file_mapping": ["not", "a", "dict"]}), encoding="utf-8")
        planner = StaticTocPlanner(plan_file)
        with pytest.raises(ConfigurationError):
            planner.create_plan(planner.discover(temp_dir), "asciidoc")
