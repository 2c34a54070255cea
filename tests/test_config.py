import numpy as np
import pytest

from hypermerge import ConfigurationError, MergeConfig


def test_defaults():
    config = MergeConfig()
    assert config.root == 0
    assert config.tag == 0
    assert config.dtype is np.int64
    assert config.timeout is None
    assert config.check_sorted


@pytest.mark.parametrize("kwargs", [{"root": 1}, {"tag": -2}, {"timeout": 0}, {"dtype": object}])
def test_bad_values(kwargs):
    with pytest.raises(ConfigurationError):
        MergeConfig(**kwargs)


def test_from_env():
    env = {"HYPERMERGE_TIMEOUT": "2.5", "HYPERMERGE_TAG": "3", "HYPERMERGE_VERBOSE": "yes"}
    config = MergeConfig.from_env(env)
    assert config.timeout == 2.5
    assert config.tag == 3
    assert config.verbose


def test_from_env_overrides():
    config = MergeConfig.from_env({"HYPERMERGE_TAG": "3"}, tag=5)
    assert config.tag == 5


def test_from_env_bad_number():
    with pytest.raises(ConfigurationError):
        MergeConfig.from_env({"HYPERMERGE_TIMEOUT": "soon"})
