"""Tests for configuration file loading."""

from code_fingerprint_engine.config import find_config_file, load_config, merge_config_with_cli


def test_no_config(tmp_path):
    assert load_config(tmp_path) == {}


def test_config_found_in_parent(tmp_path):
    (tmp_path / ".cfe.toml").write_text('[cfe]\nmetric = "l2"\nnum_results = 3\n')
    nested = tmp_path / "a" / "b"
    nested.mkdir(parents=True)

    assert find_config_file(nested) == tmp_path / ".cfe.toml"
    assert load_config(nested) == {"metric": "l2", "num_results": 3}


def test_unknown_keys_dropped_and_paths_resolved(tmp_path):
    (tmp_path / ".cferc").write_text('[cfe]\ndb = "store/decls.db"\nmodel = "x"\n')

    config = load_config(tmp_path)

    assert config == {"db": str((tmp_path / "store" / "decls.db").resolve())}


def test_invalid_toml_is_empty(tmp_path):
    (tmp_path / ".cferc").write_text("[cfe\nmetric = ")

    assert load_config(tmp_path) == {}


def test_merge_precedence():
    config = {"num_results": 3}

    assert merge_config_with_cli(config, 5, "num_results", 1) == 5
    assert merge_config_with_cli(config, None, "num_results", 1) == 3
    assert merge_config_with_cli({}, None, "num_results", 1) == 1
