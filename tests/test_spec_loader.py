"""Tests for the specification loader.

Covers:
- SpecificationCache memoization and clear()
- Module / submodule loading and error wrapping
- Sub-submodule folder aggregation
- find_submodule_spec_by_name() resolution order
- Micro-rule loading with empty fallback
"""

import json

import pytest

from app.core.config import DEFAULT_SPEC_ROOT
from app.core.errors import SpecificationNotFoundError
from app.core.spec_loader import (
    SpecificationCache,
    SpecificationLoader,
    _mentions_code,
    get_spec_loader,
)


# =============================================================================
# Helpers
# =============================================================================


def _write_store(root, module_id="7", submodules=None):
    """Minimal on-disk store with one module record."""
    module = {
        "module": module_id,
        "module_name": "Test Module",
        "submodules": submodules or [{"code": f"{module_id}.01", "name": "Test Submodule"}],
        "document_structure_template": {"sections": []},
    }
    modules_dir = root / "spec" / "modules"
    modules_dir.mkdir(parents=True)
    (modules_dir / f"module_{module_id}.json").write_text(json.dumps(module))
    (root / "spec" / "submodules" / f"module_{module_id}").mkdir(parents=True)
    return root


# =============================================================================
# Cache
# =============================================================================


class TestSpecificationCache:
    """Explicit cache object semantics."""

    def test_module_loaded_once(self, spec_loader):
        first = spec_loader.load_module_spec("5")
        second = spec_loader.load_module_spec("5")
        assert first is second
        assert spec_loader.cache.stats() == {"module": 1}

    def test_clear_empties_cache(self, spec_loader):
        spec_loader.load_submodule_spec("5", "5.12")
        assert len(spec_loader.cache) == 1
        spec_loader.cache.clear()
        assert len(spec_loader.cache) == 0

    def test_injected_cache_is_used(self):
        cache = SpecificationCache()
        loader = SpecificationLoader(DEFAULT_SPEC_ROOT, cache=cache)
        loader.load_module_spec("1")
        assert cache.get("module", "1") is not None

    def test_empty_shared_cache_is_kept_and_clearable(self):
        """An empty cache is falsy but must still be the loader's handle."""
        shared = SpecificationCache()
        first = SpecificationLoader(DEFAULT_SPEC_ROOT, cache=shared)
        second = SpecificationLoader(DEFAULT_SPEC_ROOT, cache=shared)
        assert first.cache is shared
        assert second.cache is shared

        first.load_module_spec("1")
        assert second.cache.get("module", "1") is not None

        shared.clear()
        assert len(first.cache) == 0

    def test_process_loader_is_singleton(self):
        assert get_spec_loader() is get_spec_loader()


# =============================================================================
# Loading
# =============================================================================


class TestLoadSpecs:
    """Module and submodule records."""

    def test_load_module_spec(self, spec_loader):
        spec = spec_loader.load_module_spec("5")
        assert spec.module_name == "Facility"
        assert [s.code for s in spec.submodules] == ["5.01", "5.12"]
        assert len(spec.document_structure_template.sections) == 15

    def test_load_submodule_spec(self, spec_loader):
        spec = spec_loader.load_submodule_spec("5", "5.12")
        assert spec.title == "Pest Control Program"
        assert len(spec.requirements) == 5
        assert spec.micro_inject == ["pest"]
        assert not spec.has_sub_submodules

    def test_required_requirements_skips_optional(self, spec_loader):
        spec = spec_loader.load_submodule_spec("1", "1.01")
        assert len(spec.requirements) == 4
        assert [r.code for r in spec.required_requirements] == ["1.01.01", "1.01.02", "1.01.03"]

    def test_unknown_module_raises(self, spec_loader):
        with pytest.raises(SpecificationNotFoundError) as exc_info:
            spec_loader.load_module_spec("99")
        assert exc_info.value.module_id == "99"
        assert exc_info.value.__cause__ is not None

    def test_declared_submodule_without_record_raises(self, spec_loader):
        with pytest.raises(SpecificationNotFoundError) as exc_info:
            spec_loader.load_submodule_spec("5", "5.01")
        assert exc_info.value.code == "5.01"

    def test_invalid_record_raises_not_found(self, tmp_path):
        root = _write_store(tmp_path)
        (root / "spec" / "submodules" / "module_7" / "7.01.json").write_text('{"code": "7.01"}')
        loader = SpecificationLoader(root)

        with pytest.raises(SpecificationNotFoundError, match="not found or invalid"):
            loader.load_submodule_spec("7", "7.01")

    def test_failed_load_is_not_cached(self, spec_loader):
        with pytest.raises(SpecificationNotFoundError):
            spec_loader.load_submodule_spec("5", "5.01")
        assert spec_loader.cache.get("submodule", "5", "5.01") is None


# =============================================================================
# Aggregation
# =============================================================================


class TestSubSubmoduleAggregation:
    """Large submodules stored as a folder of sub-submodules."""

    def test_requirements_concatenated_in_code_order(self, spec_loader):
        spec = spec_loader.load_submodule_spec("4", "4.05")
        assert spec.has_sub_submodules
        assert [r.code for r in spec.requirements] == [
            "4.05.01.01",
            "4.05.01.02",
            "4.05.02.01",
            "4.05.02.02",
        ]

    def test_inject_lists_deduplicated_first_seen(self, spec_loader):
        spec = spec_loader.load_submodule_spec("4", "4.05")
        assert spec.capa_inject == [
            "Container found in use without sanitation record",
            "Load shipped without vehicle inspection",
        ]
        assert spec.applies_to == ["Harvest crew", "Field transport"]
        assert spec.records_inject == ["Container sanitation log", "Vehicle inspection log"]

    def test_title_and_module_name_from_module_record(self, spec_loader):
        spec = spec_loader.load_submodule_spec("4", "4.05")
        assert spec.title == "Harvesting Activities"
        assert spec.module_name == "Module 4: Harvest Crew"

    def test_parts_are_cached(self, spec_loader):
        spec_loader.load_submodule_spec("4", "4.05")
        assert spec_loader.cache.stats() == {"sub_submodule": 2, "module": 1, "submodule": 1}

    def test_load_all_sub_submodules_missing_folder(self, spec_loader):
        assert spec_loader.load_all_sub_submodules("5", "5.99") == []

    def test_empty_folder_raises(self, tmp_path):
        root = _write_store(tmp_path)
        (root / "spec" / "submodules" / "module_7" / "7.01").mkdir()
        loader = SpecificationLoader(root)

        with pytest.raises(SpecificationNotFoundError, match="No sub-submodules"):
            loader.load_submodule_spec("7", "7.01")


# =============================================================================
# Name resolution
# =============================================================================


class TestFindSubmoduleSpecByName:
    """Free-text and code based submodule resolution."""

    def test_explicit_code(self, spec_loader):
        spec = spec_loader.find_submodule_spec_by_name("5", None, "5.12")
        assert spec.code == "5.12"

    def test_code_mentioned_in_name(self, spec_loader):
        spec = spec_loader.find_submodule_spec_by_name("5", "SOP for 5.12 devices")
        assert spec.code == "5.12"

    def test_sub_submodule_code_resolves_slice(self, spec_loader):
        spec = spec_loader.find_submodule_spec_by_name("4", "4.05.01 container cleaning")
        assert spec.code == "4.05.01"
        assert spec.title == "Harvest Containers and Tools"
        assert len(spec.requirements) == 2

    def test_alias_with_underscores(self, spec_loader):
        spec = spec_loader.find_submodule_spec_by_name("5", "Pest Control SOP")
        assert spec.code == "5.12"

    def test_alias_resolves_aggregated_submodule(self, spec_loader):
        spec = spec_loader.find_submodule_spec_by_name("4", "Harvesting procedure")
        assert spec.code == "4.05"
        assert spec.has_sub_submodules

    def test_keyword_match(self, spec_loader):
        spec = spec_loader.find_submodule_spec_by_name("5", "Rodent monitoring log review")
        assert spec.code == "5.12"

    def test_alias_wins_over_keyword(self, spec_loader):
        # "food safety policy" is a 1.01 keyword, "document control" is the 1.02 alias
        spec = spec_loader.find_submodule_spec_by_name("1", "Document control and food safety policy")
        assert spec.code == "1.02"

    def test_unloadable_match_falls_through(self, spec_loader):
        # 5.01 matches by alias but has no record
        assert spec_loader.find_submodule_spec_by_name("5", "General GMP") is None

    def test_no_match_returns_none(self, spec_loader):
        assert spec_loader.find_submodule_spec_by_name("5", "Visitor badge policy") is None

    def test_unknown_module_raises(self, spec_loader):
        with pytest.raises(SpecificationNotFoundError):
            spec_loader.find_submodule_spec_by_name("42", "Anything")

    def test_code_match_respects_boundaries(self):
        assert _mentions_code("see 5.12 program", "5.12")
        assert not _mentions_code("see 5.12 program", "5.1")
        assert not _mentions_code("see 15.12 program", "5.12")


# =============================================================================
# Micro-rules
# =============================================================================


class TestMicroRules:
    """Supplementary rule sets."""

    def test_load_micro_rules(self, spec_loader):
        rules = spec_loader.load_micro_rules("pest")
        assert list(rules.rules) == ["P-01", "P-02", "P-03"]

    def test_missing_category_is_empty_and_cached(self, spec_loader):
        rules = spec_loader.load_micro_rules("glass")
        assert rules.rules == {}
        assert spec_loader.cache.get("micro_rules", "", "glass") is rules

    def test_relevant_micro_rules_skips_empty(self, spec_loader):
        relevant = spec_loader.get_relevant_micro_rules(["glass", "pest", "document_control"])
        assert list(relevant) == ["pest", "document_control"]
