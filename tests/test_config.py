"""Tests for configuration system."""

import pytest
import tempfile
from pathlib import Path

from pydantic import ValidationError

from verified_search.config import (
    Config,
    RunnerConfig,
    BeamSearchConfig,
    MCTSConfig,
    DiverseDecodingConfig,
    SimilarityConfig,
    get_default_config,
)


class TestRunnerConfig:
    def test_default_values(self):
        config = RunnerConfig()
        assert config.parallel is False
        assert config.aggregation == "weighted_avg"
        assert config.on_error == "continue"
        assert config.timeout == 30.0

    def test_rejects_unknown_aggregation(self):
        with pytest.raises(ValidationError):
            RunnerConfig(aggregation="median")

    def test_rejects_unknown_error_policy(self):
        with pytest.raises(ValidationError):
            RunnerConfig(on_error="retry")

    def test_rejects_non_positive_timeout(self):
        with pytest.raises(ValidationError):
            RunnerConfig(timeout=0)


class TestSearchConfigs:
    def test_beam_defaults(self):
        config = BeamSearchConfig()
        assert config.beam_width == 5
        assert config.depth == 3
        assert config.branching_factor == 2

    @pytest.mark.parametrize("field,value", [
        ("beam_width", 0),
        ("beam_width", 101),
        ("depth", 21),
        ("branching_factor", 11),
    ])
    def test_beam_ranges(self, field, value):
        with pytest.raises(ValidationError):
            BeamSearchConfig(**{field: value})

    def test_mcts_defaults(self):
        config = MCTSConfig()
        assert config.simulations == 100
        assert config.exploration_constant == pytest.approx(1.414)
        assert config.max_depth == 10
        assert config.max_children == 3

    def test_mcts_rejects_zero_exploration(self):
        with pytest.raises(ValidationError):
            MCTSConfig(exploration_constant=0)

    def test_temperature_range_order(self):
        with pytest.raises(ValidationError):
            DiverseDecodingConfig(temperature_range=(1.0, 0.5))
        with pytest.raises(ValidationError):
            DiverseDecodingConfig(temperature_range=(0.0, 2.5))

    def test_lambda_alias(self):
        assert DiverseDecodingConfig(**{"lambda": 0.2}).mmr_lambda == 0.2
        assert DiverseDecodingConfig(mmr_lambda=0.3).mmr_lambda == 0.3

    def test_extra_keys_forbidden(self):
        with pytest.raises(ValidationError):
            BeamSearchConfig(beam_size=3)


class TestSimilarityConfig:
    def test_weights_must_sum_to_one(self):
        with pytest.raises(ValidationError):
            SimilarityConfig(jaccard_weight=0.7, edit_weight=0.7)

    def test_valid_weights(self):
        config = SimilarityConfig(jaccard_weight=0.7, edit_weight=0.3)
        assert config.jaccard_weight == 0.7


class TestConfig:
    def test_default_config(self):
        config = Config()
        assert config.runner.aggregation == "weighted_avg"
        assert config.beam.beam_width == 5
        assert config.output.verbosity == "normal"

    def test_get_default_config(self):
        config = get_default_config()
        assert config.beam.beam_width == 3
        assert config.diverse.top_k == 3

    def test_to_dict_uses_alias(self):
        data = Config().to_dict()
        assert "lambda" in data["diverse"]
        assert data["runner"]["timeout"] == 30.0

    def test_from_dict(self):
        config = Config.from_dict({
            "runner": {"parallel": True, "aggregation": "min"},
            "diverse": {"lambda": 0.9},
        })
        assert config.runner.parallel is True
        assert config.runner.aggregation == "min"
        assert config.diverse.mmr_lambda == 0.9

    def test_yaml_roundtrip(self):
        config = Config()
        config.beam.beam_width = 7
        config.mcts.terminal_markers = ("done:",)

        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "config.yaml"
            config.to_yaml(path)
            loaded = Config.from_yaml(path)

        assert loaded.beam.beam_width == 7
        assert loaded.mcts.terminal_markers == ("done:",)
        assert loaded.diverse.mmr_lambda == config.diverse.mmr_lambda

    def test_empty_yaml(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "empty.yaml"
            path.write_text("")
            assert Config.from_yaml(path) == Config()
