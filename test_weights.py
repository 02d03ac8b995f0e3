"""Weight configuration loading: valid files, and every way a file can be bad."""
import json
import logging

import pytest
from pydantic import ValidationError

from engine.aggregation import aggregate
from engine.weights import DEFAULT_WEIGHT, WeightConfig, load_weights
from schemas.domain import CheckResult
from schemas.taxonomy import Pillar


def _write(tmp_path, content, name="weights.json"):
    path = tmp_path / name
    path.write_text(content if isinstance(content, str) else json.dumps(content))
    return path


def test_no_path_is_default_without_warning(caplog):
    with caplog.at_level(logging.WARNING):
        config = load_weights(None)
    assert config == WeightConfig.default()
    assert caplog.text == ""


def test_valid_file(tmp_path):
    path = _write(tmp_path, {
        "Security": 2,
        "Cost Optimization": 0.5,
        "controlOverrides": {"SE05": 3.0, "OE05": 0},
    })
    config = load_weights(path)
    assert config.pillar_weight(Pillar.SECURITY) == 2.0
    assert config.pillar_weight("CostOptimization") == 0.5
    assert config.pillar_weight(Pillar.RELIABILITY) == DEFAULT_WEIGHT
    assert config.check_weight("SE05") == 3.0
    assert config.check_weight("OE05") == 0
    assert config.check_weight("RE01") == DEFAULT_WEIGHT


@pytest.mark.parametrize("content", [
    "{not json",
    "[1, 2, 3]",
    '{"Security": -1}',
    '{"Security": "heavy"}',
    '{"Sustainability": 2}',
    '{"controlOverrides": {"SE01": -0.5}}',
    '{"controlOverrides": ["SE01"]}',
    '{"Security": 1e999}',
    '{"controlOverrides": {"SE01": 1e999}}',
    '{"Security": NaN}',
])
def test_malformed_file_falls_back_with_warning(tmp_path, caplog, content):
    path = _write(tmp_path, content)
    with caplog.at_level(logging.WARNING, logger="engine.weights"):
        config = load_weights(path)
    assert config == WeightConfig.default()
    assert "using equal weights" in caplog.text


def test_missing_file_falls_back_with_warning(tmp_path, caplog):
    with caplog.at_level(logging.WARNING, logger="engine.weights"):
        config = load_weights(tmp_path / "absent.json")
    assert config == WeightConfig.default()
    assert "not found" in caplog.text


def test_directory_path_falls_back(tmp_path, caplog):
    with caplog.at_level(logging.WARNING, logger="engine.weights"):
        config = load_weights(tmp_path)
    assert config == WeightConfig.default()
    assert caplog.text


def test_from_mapping_raises_on_bad_input():
    with pytest.raises(ValidationError):
        WeightConfig.from_mapping({"Security": -2})


def test_round_trip_through_to_dict():
    config = WeightConfig.from_mapping({"Reliability": 1.5, "controlOverrides": {"RE01": 2}})
    assert WeightConfig.from_mapping(config.to_dict()) == config


def test_infinite_weights_never_reach_aggregation(tmp_path):
    path = _write(tmp_path, '{"Security": 1e999, "controlOverrides": {"SE01": 1e999}}')
    weights = load_weights(path)
    assert weights == WeightConfig.default()

    results = [
        CheckResult(check_id="SE01", pillar=Pillar.SECURITY, subscription_id="s", status="Pass"),
        CheckResult(check_id="RE01", pillar=Pillar.RELIABILITY, subscription_id="s", status="Fail"),
    ]
    assert aggregate(results, weights).portfolio_score == 50
