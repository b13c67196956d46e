"""Tests for config layering: defaults, YAML file, environment."""

import pytest

from burner.config import load_config


def test_defaults():
    cfg = load_config(environ={})
    assert cfg["port"] == 3000
    assert cfg["redis"] == {"host": "localhost", "port": 6379, "socket_timeout": 5}
    assert cfg["burn"]["max_workers"] is None
    assert cfg["burn"]["start_method"] == "spawn"


def test_yaml_file_merges_over_defaults(tmp_path):
    path = tmp_path / "burnbox.yaml"
    path.write_text("redis:\n  host: redis-master\nburn:\n  max_mem_mb: 512\n")
    cfg = load_config(str(path), environ={})
    assert cfg["redis"]["host"] == "redis-master"
    assert cfg["redis"]["port"] == 6379
    assert cfg["burn"]["max_mem_mb"] == 512
    assert cfg["burn"]["max_seconds"] is None


def test_empty_yaml_file(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("")
    assert load_config(str(path), environ={})["port"] == 3000


def test_env_overrides_file(tmp_path):
    path = tmp_path / "burnbox.yaml"
    path.write_text("redis:\n  host: from-file\n")
    cfg = load_config(str(path), environ={"REDIS_HOST": "from-env", "BURN_MAX_WORKERS": "8"})
    assert cfg["redis"]["host"] == "from-env"
    assert cfg["burn"]["max_workers"] == 8


def test_empty_env_var_counts_as_unset():
    assert load_config(environ={"REDIS_HOST": ""})["redis"]["host"] == "localhost"


def test_bad_integer_env_is_fatal():
    with pytest.raises(ValueError, match="BURN_MAX_MEM_MB"):
        load_config(environ={"BURN_MAX_MEM_MB": "lots"})
