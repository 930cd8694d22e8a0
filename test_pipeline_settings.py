"""
Pipeline Settings Test Suite
============================
"""

import pytest

from pipeline_settings import EVM_VERSION, ConfigurationError, Settings, load_settings
from solidity_compiler import build_standard_input


def load(tmp_path, yaml_text=None, **environ):
    path = tmp_path / "pipeline.yaml"
    if yaml_text is not None:
        path.write_text(yaml_text)
    return load_settings(str(path), environ=environ, use_dotenv=False)


def test_defaults_without_file_or_environment(tmp_path):
    settings = load(tmp_path)

    assert settings.api_key == ""
    assert settings.max_generation_attempts == 3
    assert settings.analysis_batch_size == 5
    assert settings.endpoint_max_retries == 3
    assert settings.solc_version == "0.8.29"
    assert settings.port == 8080


def test_file_then_environment(tmp_path):
    settings = load(
        tmp_path,
        "model: file-model\nport: 9000\nflatten_command: [hardhat, flatten]\n",
        LLM_MODEL="env-model",
        OPENAI_API_KEY="sk-test",
    )

    assert settings.model == "env-model"
    assert settings.port == 9000
    assert settings.flatten_command == ["hardhat", "flatten"]
    assert settings.api_key == "sk-test"


def test_openrouter_key_wins(tmp_path):
    settings = load(tmp_path, OPENROUTER_API_KEY="or-key", OPENAI_API_KEY="oa-key")

    assert settings.api_key == "or-key"


def test_config_path_from_environment(tmp_path):
    path = tmp_path / "custom.yaml"
    path.write_text("solc_version: 0.8.24\n")

    settings = load_settings(environ={"PIPELINE_CONFIG_PATH": str(path)}, use_dotenv=False)

    assert settings.solc_version == "0.8.24"


@pytest.mark.parametrize("yaml_text", ["- a\n- b\n", "evm_version: london\n", "colour: blue\n"])
def test_invalid_config_file(tmp_path, yaml_text):
    with pytest.raises(ConfigurationError):
        load(tmp_path, yaml_text)


def test_invalid_environment_value(tmp_path):
    with pytest.raises(ConfigurationError):
        load(tmp_path, PORT="eighty")


def test_to_dict_masks_key():
    data = Settings(api_key="secret").to_dict()

    assert data["api_key"] == "***"
    assert "secret" not in str(data)


def test_compiler_contract_is_not_a_setting():
    data = Settings().to_dict()

    assert "evm_version" not in data
    assert "optimizer_runs" not in data
    assert build_standard_input("contract A {}")["settings"]["evmVersion"] == EVM_VERSION
