from pathlib import Path

import pytest

from multienrich.config import (
    DEFAULT_BINDINGS,
    ColumnBindings,
    load_pipeline_settings,
    load_yaml_config,
)
from multienrich.errors import ConfigurationError


def test_bindings_from_mapping() -> None:
    bindings = ColumnBindings.from_mapping({"name": "Term", "pvalue": "pvalue"})

    assert bindings.name == "Term"
    assert bindings.pvalue == "pvalue"
    assert bindings.genes == DEFAULT_BINDINGS.genes
    assert bindings.as_dict()["name"] == "Term"


def test_unknown_binding_is_rejected() -> None:
    with pytest.raises(ConfigurationError, match="Unknown column binding"):
        ColumnBindings.from_mapping({"pval": "p"})


def test_load_yaml_config(tmp_path: Path) -> None:
    path = tmp_path / "settings.yaml"
    path.write_text("nrow: 2\nncol: 3\n")
    assert load_yaml_config(path) == {"nrow": 2, "ncol": 3}

    empty = tmp_path / "empty.yaml"
    empty.write_text("")
    assert load_yaml_config(empty) == {}


def test_load_yaml_config_errors(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError, match="not found"):
        load_yaml_config(tmp_path / "missing.yaml")

    listing = tmp_path / "list.yaml"
    listing.write_text("- a\n- b\n")
    with pytest.raises(ConfigurationError, match="mapping"):
        load_yaml_config(listing)


def test_load_pipeline_settings(tmp_path: Path) -> None:
    path = tmp_path / "pipeline.yaml"
    path.write_text(
        "columns:\n"
        "  name: Term\n"
        "cutoff_row_min_p: 0.01\n"
        "top_enrich_n: 10\n"
        "byrow: true\n"
    )
    settings = load_pipeline_settings(path)

    assert settings["bindings"] == ColumnBindings(name="Term")
    assert settings["cutoff_row_min_p"] == 0.01
    assert settings["top_enrich_n"] == 10
    assert settings["byrow"] is True


def test_unknown_pipeline_setting(tmp_path: Path) -> None:
    path = tmp_path / "pipeline.yaml"
    path.write_text("cutoff: 0.01\n")
    with pytest.raises(ConfigurationError, match="cutoff"):
        load_pipeline_settings(path)
