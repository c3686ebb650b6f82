import json
import os

import pytest

from forumgraph.config import ConfigError, load_config


def write_json(path, data):
    path.write_text(json.dumps(data), encoding="utf-8")
    return str(path)


def test_camel_case_config_file(tmp_path):
    path = write_json(tmp_path / "config.json", {
        "forumUrl": "https://forum.example",
        "outDir": "data/",
        "cacheMaxFiles": 5,
        "cacheTtl": 60,
        "scrapInterval": 200,
    })
    config = load_config(path, env={})
    assert config.base_url == "https://forum.example/"
    assert config.out_dir == "data/"
    assert config.cache_max_files == 5
    assert config.cache_ttl_seconds == 60
    assert config.scrap_interval_ms == 200
    assert config.queue_path == os.path.join("data/", "queue.json")


def test_env_and_overrides_win_over_file(tmp_path):
    path = write_json(tmp_path / "config.json", {"baseUrl": "https://forum.example/", "outDir": "data/"})
    env = {"FORUMGRAPH_BASE_URL": "http://other.example", "FORUMGRAPH_MAX_RETRIES": "5", "UNRELATED": "x"}
    config = load_config(path, env=env, out_dir="cli/", username=None)
    assert config.base_url == "http://other.example/"
    assert config.max_retries == 5
    assert config.out_dir == "cli/"
    assert config.username is None


def test_missing_file_uses_defaults(tmp_path):
    config = load_config(str(tmp_path / "nope.json"), env={})
    assert config.base_url == "https://forum.pirati.cz/"
    assert config.cache_max_files == 1000
    assert config.queue_path == os.path.join("./out/", "queue.json")


def test_invalid_values_raise_config_error(tmp_path):
    with pytest.raises(ConfigError):
        load_config(str(tmp_path / "nope.json"), env={"FORUMGRAPH_BASE_URL": "ftp://forum.example/"})
    with pytest.raises(ConfigError):
        load_config(str(tmp_path / "nope.json"), env={}, cache_max_files=0)


def test_malformed_json_raises_config_error(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(str(path), env={})

    path.write_text("[1, 2]", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(str(path), env={})
