"""
Unit Tests for Deployer Configuration
"""

import json
import os

import pytest

from deployer.exceptions import ConfigError
from deployer.types import ResourceLimits
from utils.config import ENV_OVERRIDES, load_config


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep the host environment out of the tests"""
    for name in ENV_OVERRIDES:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def env_file(tmp_path):
    path = tmp_path / '.env'
    path.write_text('')
    return str(path)


def _write(tmp_path, data):
    path = tmp_path / 'deployer_config.json'
    path.write_text(json.dumps(data))
    return path


class TestLoadConfig:
    """File and environment layering"""

    def test_defaults_without_file(self, tmp_path, env_file, monkeypatch):
        monkeypatch.chdir(tmp_path)

        config = load_config(env_file=env_file)

        assert config.ws_url == 'ws://127.0.0.1:8546'
        assert config.constructor_args == []
        assert config.limits == ResourceLimits(compute_limit=3_000_000)

    def test_values_from_file(self, tmp_path, env_file):
        path = _write(tmp_path, {
            'ws_url': 'wss://node.example:8546',
            'artifact_path': 'build/Payment.json',
            'constructor': 'with_threshold',
            'constructor_args': ['0x' + '11' * 32, 500],
            'compute_limit': 1_000_000,
            'storage_deposit_limit': 5 * 10**15,
            'endowment': 10,
        })

        config = load_config(path, env_file=env_file)

        assert config.ws_url == 'wss://node.example:8546'
        assert config.constructor == 'with_threshold'
        assert config.limits == ResourceLimits(1_000_000, 5 * 10**15, 10)

    def test_environment_wins(self, tmp_path, env_file, monkeypatch):
        path = _write(tmp_path, {'compute_limit': 1_000_000, 'constructor': 'new'})
        monkeypatch.setenv('DEPLOYER_GAS_LIMIT', '0x1e8480')
        monkeypatch.setenv('DEPLOYER_CONSTRUCTOR', '1')
        monkeypatch.setenv('DEPLOYER_CONSTRUCTOR_ARGS', '["0xabc", 3]')
        monkeypatch.setenv('DEPLOYER_TIMEOUT', 'none')

        config = load_config(path, env_file=env_file)

        assert config.compute_limit == 2_000_000
        assert config.constructor == 1
        assert config.constructor_args == ['0xabc', 3]
        assert config.timeout_seconds is None

    def test_dotenv_file(self, tmp_path, monkeypatch):
        # load_dotenv writes to os.environ; give it a throwaway copy
        monkeypatch.setattr(os, 'environ', dict(os.environ))
        monkeypatch.chdir(tmp_path)
        dotenv = tmp_path / '.env'
        dotenv.write_text('DEPLOYER_WS_URL=ws://dotenv.node:9944\n')

        config = load_config(env_file=str(dotenv))

        assert config.ws_url == 'ws://dotenv.node:9944'


class TestConfigErrors:
    """Invalid configuration"""

    def test_missing_explicit_file(self, tmp_path, env_file):
        with pytest.raises(ConfigError):
            load_config(tmp_path / 'nope.json', env_file=env_file)

    def test_invalid_json(self, tmp_path, env_file):
        path = tmp_path / 'deployer_config.json'
        path.write_text('{')

        with pytest.raises(ConfigError):
            load_config(path, env_file=env_file)

    def test_unknown_key(self, tmp_path, env_file):
        with pytest.raises(ConfigError):
            load_config(_write(tmp_path, {'private_key': '0x00'}), env_file=env_file)

    def test_http_endpoint_rejected(self, tmp_path, env_file):
        with pytest.raises(ConfigError):
            load_config(_write(tmp_path, {'ws_url': 'http://127.0.0.1:8545'}), env_file=env_file)

    def test_bad_env_number(self, tmp_path, env_file, monkeypatch):
        monkeypatch.setenv('DEPLOYER_ENDOWMENT', 'lots')

        with pytest.raises(ConfigError):
            load_config(_write(tmp_path, {}), env_file=env_file)

    def test_args_must_be_list(self, tmp_path, env_file):
        with pytest.raises(ConfigError):
            load_config(_write(tmp_path, {'constructor_args': {'admin': '0x00'}}), env_file=env_file)

    def test_nonpositive_timeout(self, tmp_path, env_file):
        with pytest.raises(ConfigError):
            load_config(_write(tmp_path, {'timeout_seconds': 0}), env_file=env_file)
