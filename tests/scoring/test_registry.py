"""Tests for the category registry and JSON loading."""

import json

import pytest

from src.models.category import CategoryConfig
from src.scoring import registry as registry_module
from src.scoring.registry import CategoryRegistry, load_default_registry, normalize_key


def _category(category_id: str, aliases: tuple[str, ...] = ()) -> CategoryConfig:
    return CategoryConfig.model_validate({
        "categoryId": category_id,
        "aliases": list(aliases),
        "criteria": [{
            "id": "c",
            "label": "C",
            "dataField": "c",
            "weightSubjective": 1,
            "normalization": {"method": "linear", "min": 0, "max": 10},
        }],
    })


class TestNormalizeKey:
    @pytest.mark.parametrize("key", ["robot_vacuum", "Robot Vacuum", "robot-vacuum", "ROBOTVACUUM"])
    def test_variants_collapse(self, key) -> None:
        assert normalize_key(key) == "robotvacuum"


class TestCategoryRegistry:
    def test_lookup_by_id_and_alias(self) -> None:
        registry = CategoryRegistry([_category("tv", ("television", "smart-tv"))])
        assert registry["tv"].category_id == "tv"
        assert registry["Smart TV"].category_id == "tv"
        assert "Television" in registry
        assert list(registry) == ["tv"]
        assert len(registry) == 1

    def test_unknown_raises_key_error(self) -> None:
        registry = CategoryRegistry([_category("tv")])
        with pytest.raises(KeyError, match="Unknown category"):
            registry["toaster"]
        assert "toaster" not in registry
        assert registry.get("toaster") is None

    def test_duplicate_id_rejected(self) -> None:
        with pytest.raises(ValueError, match="Duplicate category id"):
            CategoryRegistry([_category("tv"), _category("tv")])

    def test_alias_collision_rejected(self) -> None:
        with pytest.raises(ValueError, match="collides"):
            CategoryRegistry([_category("tv"), _category("monitor", ("TV",))])


class TestLoadFromJson:
    def test_bundled_config(self, vacuum_category) -> None:
        assert vacuum_category.hybrid_alpha == 0.6
        assert vacuum_category.criteria[0].data_field == "specs.suction_pa"
        assert {ctx.id for ctx in vacuum_category.contexts} >= {"apartment", "large_house"}

    def test_directory_of_files(self, tmp_path) -> None:
        (tmp_path / "a.json").write_text(
            json.dumps(_category("tv").model_dump(mode="json", by_alias=True)), encoding="utf-8",
        )
        (tmp_path / "b.json").write_text(
            json.dumps([
                _category("fridge").model_dump(mode="json", by_alias=True),
                _category("oven").model_dump(mode="json", by_alias=True),
            ]),
            encoding="utf-8",
        )
        (tmp_path / "notes.txt").write_text("ignored", encoding="utf-8")
        registry = CategoryRegistry.load_from_json(tmp_path)
        assert sorted(registry) == ["fridge", "oven", "tv"]

    def test_missing_path(self, tmp_path) -> None:
        with pytest.raises(FileNotFoundError):
            CategoryRegistry.load_from_json(tmp_path / "nope.json")

    def test_wrong_top_level_type(self, tmp_path) -> None:
        path = tmp_path / "bad.json"
        path.write_text('"just a string"', encoding="utf-8")
        with pytest.raises(ValueError, match="expected a category object"):
            CategoryRegistry.load_from_json(path)


class TestLoadDefaultRegistry:
    def test_cached_and_reads_settings(self, monkeypatch, tmp_path) -> None:
        path = tmp_path / "tv.json"
        path.write_text(
            json.dumps(_category("tv").model_dump(mode="json", by_alias=True)), encoding="utf-8",
        )
        monkeypatch.setenv("CATEGORY_CONFIG_PATH", str(path))
        load_default_registry.cache_clear()
        try:
            first = registry_module.load_default_registry()
            assert list(first) == ["tv"]
            assert registry_module.load_default_registry() is first
        finally:
            load_default_registry.cache_clear()
