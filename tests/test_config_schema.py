"""Tests for configuration files and result documents."""

import json

import numpy as np
import pytest

from myomotion import __version__
from myomotion.config import DEFAULT_CONFIG, get_settings, load_config, save_config
from myomotion.schema import RESULT_KINDS, create_result, load_json, save_json


class TestGetSettings:

    def test_defaults_are_copied(self):
        settings = get_settings("force")
        settings["hysteresis"] = 99
        assert DEFAULT_CONFIG["force"]["hysteresis"] != 99

    def test_override(self):
        settings = get_settings("jump", {"gravity": 9.0})
        assert settings["gravity"] == 9.0
        assert settings["smoothing_window"] == DEFAULT_CONFIG["jump"]["smoothing_window"]

    def test_unknown_section(self):
        with pytest.raises(ValueError):
            get_settings("gait")


class TestConfigFiles:

    def test_json_roundtrip_merges_defaults(self, tmp_path):
        path = tmp_path / "cfg.json"
        save_config({"force": {"hysteresis": 0.5}}, path)
        cfg = load_config(path)
        assert cfg["force"]["hysteresis"] == 0.5
        assert cfg["force"]["moving_average_window"] == 3000
        assert cfg["balance"] == DEFAULT_CONFIG["balance"]

    def test_yaml(self, tmp_path):
        pytest.importorskip("yaml")
        path = tmp_path / "cfg.yaml"
        save_config({"jump": {"side": "left"}}, path)
        assert load_config(path)["jump"]["side"] == "left"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nope.json")

    def test_not_a_dict(self, tmp_path):
        path = tmp_path / "cfg.json"
        path.write_text("[1, 2]")
        with pytest.raises(ValueError, match="Config must be a dict"):
            load_config(path)

    def test_save_creates_parents(self, tmp_path):
        path = tmp_path / "a" / "b" / "cfg.json"
        assert save_config(DEFAULT_CONFIG, path) == str(path)
        assert path.exists()


class TestResultDocuments:

    def test_create(self):
        doc = create_result("jump", {"jumps": []}, {"input": "x.json"})
        assert doc["myomotion_version"] == __version__
        assert doc["kind"] == "jump"
        assert doc["meta"] == {"input": "x.json"}

    def test_unknown_kind(self):
        with pytest.raises(ValueError):
            create_result("gait", {})

    def test_kinds(self):
        assert "cycles" in RESULT_KINDS and "balance" in RESULT_KINDS

    def test_numpy_values_saved(self, tmp_path):
        doc = create_result("spectrum", {
            "frequencies": np.arange(3) * 0.5,
            "dominant_frequency": np.float64(0.5),
            "n": np.int64(3),
            "ok": np.bool_(True),
            "hull": [(np.float32(0.5), np.int32(1))],
        })
        path = tmp_path / "out" / "spec.json"
        save_json(doc, path)
        loaded = load_json(path)
        assert loaded["result"]["frequencies"] == [0.0, 0.5, 1.0]
        assert loaded["result"]["n"] == 3
        assert loaded["result"]["ok"] is True
        assert loaded["result"]["hull"] == [[0.5, 1]]

    def test_load_missing(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_json(tmp_path / "nope.json")

    def test_load_not_a_document(self, tmp_path):
        path = tmp_path / "x.json"
        path.write_text(json.dumps([1, 2]))
        with pytest.raises(ValueError):
            load_json(path)
        path.write_text(json.dumps({"result": {}}))
        with pytest.raises(ValueError, match="kind"):
            load_json(path)
        path.write_text(json.dumps({"kind": "cop"}))
        with pytest.raises(ValueError, match="result"):
            load_json(path)
