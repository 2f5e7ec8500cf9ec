"""Tests for configuration loading and persistence."""

import pytest
import toml

from polygraph import config as config_module
from polygraph.config import AnalyzerConfig, Thresholds, config_from_dict, load_settings
from polygraph.config_manager import default_config, init_config, load_full_config, save_full_config
from polygraph.models import Layer


class TestThresholds:

    def test_defaults(self):
        thresholds = Thresholds()
        assert thresholds.god_class_loc == 500
        assert thresholds.god_class_methods == 20
        assert thresholds.long_method_loc == 50
        assert thresholds.high_complexity == 10
        assert thresholds.deep_nesting == 4
        assert thresholds.feature_envy_ratio == 2.0

    @pytest.mark.parametrize("name", ["long_method_loc", "feature_envy_ratio", "deep_nesting"])
    def test_non_positive_values_are_rejected(self, name):
        with pytest.raises(ValueError, match=f"Threshold '{name}' must be positive"):
            Thresholds(**{name: 0})


class TestLayerDetection:

    @pytest.mark.parametrize(
        "path, layer",
        [
            ("src/App.tsx", Layer.FRONTEND),
            ("src-tauri/src/main.rs", Layer.BACKEND),
            ("sidecar/worker.py", Layer.SIDECAR),
            ("scripts/build.py", Layer.DATA),
            ("src\\win.ts", Layer.FRONTEND),
        ],
    )
    def test_default_rules(self, path, layer):
        assert AnalyzerConfig().detect_layer(path) == layer

    def test_first_matching_prefix_wins(self):
        config = AnalyzerConfig(layer_rules=[("lib/", Layer.BACKEND), ("lib/ui/", Layer.FRONTEND)])
        assert config.detect_layer("lib/ui/button.ts") == Layer.BACKEND


class TestConfigFromDict:

    def test_all_sections(self):
        config = config_from_dict({
            "analysis": {"default_layer": "external", "skip_dirs": ["generated"], "max_workers": 2},
            "thresholds": {"long_method_loc": 80},
            "security": {"enabled": False},
            "layers": {"web/": "frontend"},
        })
        assert config.default_layer == Layer.EXTERNAL
        assert "generated" in config.skip_dirs
        assert "node_modules" in config.skip_dirs
        assert config.max_workers == 2
        assert config.thresholds.long_method_loc == 80
        assert config.thresholds.high_complexity == 10
        assert config.security_enabled is False
        assert config.layer_rules == [("web/", Layer.FRONTEND)]

    def test_unknown_threshold_is_ignored(self, caplog):
        config = config_from_dict({"thresholds": {"bogus": 3}})
        assert config.thresholds == Thresholds()
        assert "Ignoring unknown thresholds: bogus" in caplog.text

    def test_invalid_layer(self):
        with pytest.raises(ValueError, match="Invalid layer in \\[layers\\]"):
            config_from_dict({"layers": {"web/": "middleware"}})

    def test_invalid_threshold(self):
        with pytest.raises(ValueError):
            config_from_dict({"thresholds": {"high_complexity": -1}})

    def test_architecture_section(self):
        config = config_from_dict({"architecture": {"enabled": False, "min_confidence": 50}})
        assert config.architecture_enabled is False
        assert config.architecture_min_confidence == 50
        assert AnalyzerConfig().architecture_min_confidence == 30

    def test_architecture_confidence_out_of_range(self):
        with pytest.raises(ValueError, match="min_confidence must be between 0 and 100"):
            config_from_dict({"architecture": {"min_confidence": 150}})


class TestLoadSettings:

    def test_defaults_without_files(self, temp_dir):
        settings = load_settings(project_root=temp_dir)
        assert settings.thresholds == Thresholds()
        assert settings.max_workers is None

    def test_project_overrides_user_per_key(self, temp_dir):
        save_full_config(
            {"thresholds": {"long_method_loc": 70, "high_complexity": 15}},
            config_module.CONFIG_FILE,
        )
        (temp_dir / "polygraph.toml").write_text("[thresholds]\nlong_method_loc = 30\n", encoding="utf-8")

        settings = load_settings(project_root=temp_dir)

        assert settings.thresholds.long_method_loc == 30
        assert settings.thresholds.high_complexity == 15

    def test_explicit_path_replaces_both(self, temp_dir):
        save_full_config({"thresholds": {"high_complexity": 15}}, config_module.CONFIG_FILE)
        (temp_dir / "polygraph.toml").write_text("[thresholds]\nlong_method_loc = 30\n", encoding="utf-8")
        explicit = temp_dir / "ci.toml"
        explicit.write_text("[thresholds]\ndeep_nesting = 2\n", encoding="utf-8")

        settings = load_settings(project_root=temp_dir, config_path=explicit)

        assert settings.thresholds.deep_nesting == 2
        assert settings.thresholds.high_complexity == 10
        assert settings.thresholds.long_method_loc == 50

    def test_environment_sets_workers(self, temp_dir, monkeypatch):
        (temp_dir / "polygraph.toml").write_text("[analysis]\nmax_workers = 8\n", encoding="utf-8")
        monkeypatch.setenv("POLYGRAPH_MAX_WORKERS", "3")
        assert load_settings(project_root=temp_dir).max_workers == 3

    def test_environment_workers_must_be_integer(self, temp_dir, monkeypatch):
        monkeypatch.setenv("POLYGRAPH_MAX_WORKERS", "many")
        with pytest.raises(ValueError, match="POLYGRAPH_MAX_WORKERS"):
            load_settings(project_root=temp_dir)


class TestConfigManager:

    def test_init_writes_defaults(self, temp_dir):
        path = init_config(temp_dir / "config.toml")
        assert toml.loads(path.read_text(encoding="utf-8")) == default_config()

    def test_init_refuses_to_overwrite(self, temp_dir):
        path = init_config(temp_dir / "config.toml")
        with pytest.raises(FileExistsError):
            init_config(path)
        assert init_config(path, overwrite=True) == path

    def test_default_config_round_trips_through_loader(self, temp_dir):
        path = init_config(temp_dir / "config.toml")
        config = config_from_dict(load_full_config(path))
        assert config.thresholds == Thresholds()
        assert config.detect_layer("src-tauri/src/lib.rs") == Layer.BACKEND

    def test_missing_and_invalid_files(self, temp_dir, caplog):
        assert load_full_config(temp_dir / "missing.toml") == {}
        broken = temp_dir / "broken.toml"
        broken.write_text("[thresholds\nlong_method_loc = ", encoding="utf-8")
        assert load_full_config(broken) == {}
        assert "Could not read config" in caplog.text
