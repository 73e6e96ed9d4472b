import json
from pathlib import Path

import pytest
from solders.keypair import Keypair

from ore_cli.config import (
    ClientConfig,
    ConfigurationError,
    KeypairError,
    SubmitterSettings,
    admin_commands_enabled,
    load_client_config,
    load_keypair,
)


def _write_config(path: Path, rpc_url: str = "http://filehost:8899") -> Path:
    path.write_text(
        f"json_rpc_url: {rpc_url}\n"
        "keypair_path: /tmp/file-id.json\n"
        "commitment: finalized\n"
    )
    return path


def test_load_client_config_prefers_environment_over_yaml(tmp_path: Path) -> None:
    config_path = _write_config(tmp_path / "config.yml")

    env_map = {
        "ORE_RPC_URL": "https://envhost:3333",
        "ORE_KEYPAIR_PATH": "/tmp/env-id.json",
        "ORE_PRIORITY_FEE": "25",
    }

    config = load_client_config(config_path=config_path, env=env_map)

    assert isinstance(config, ClientConfig)
    assert config.rpc_url == "https://envhost:3333"
    assert config.keypair_path == Path("/tmp/env-id.json")
    assert config.commitment == "finalized"
    assert config.priority_fee == 25


def test_load_client_config_prefers_flags_over_environment(tmp_path: Path) -> None:
    config_path = _write_config(tmp_path / "config.yml")

    config = load_client_config(
        config_path=config_path,
        env={"ORE_RPC_URL": "https://envhost:3333", "ORE_PRIORITY_FEE": "25"},
        overrides={"rpc_url": "http://flaghost:1", "keypair_path": None, "priority_fee": 0},
    )

    assert config.rpc_url == "http://flaghost:1"
    assert config.keypair_path == Path("/tmp/file-id.json")
    assert config.priority_fee == 0


def test_load_client_config_reads_default_path_when_present(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    config_path = _write_config(tmp_path / "config.yml", rpc_url="http://yamlhost:4545")
    monkeypatch.setattr("ore_cli.config.DEFAULT_CONFIG_PATH", config_path)

    config = load_client_config(env={})

    assert config.rpc_url == "http://yamlhost:4545"
    assert config.commitment == "finalized"
    assert config.priority_fee == 0


def test_missing_default_config_falls_back_to_defaults(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr("ore_cli.config.DEFAULT_CONFIG_PATH", tmp_path / "absent.yml")

    config = load_client_config(env={})

    assert config.rpc_url == "https://api.mainnet-beta.solana.com"
    assert config.commitment == "confirmed"


def test_explicit_config_path_must_exist(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError, match="Could not find config file"):
        load_client_config(config_path=tmp_path / "missing.yml", env={})


def test_solana_config_env_path_must_exist(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError):
        load_client_config(env={"SOLANA_CONFIG": str(tmp_path / "missing.yml")})


def test_invalid_rpc_url_is_rejected(tmp_path: Path) -> None:
    config_path = _write_config(tmp_path / "config.yml", rpc_url="ftp://example.com")
    with pytest.raises(ConfigurationError, match="Invalid RPC endpoint"):
        load_client_config(config_path=config_path, env={})


def test_unknown_commitment_is_rejected(tmp_path: Path) -> None:
    config_path = _write_config(tmp_path / "config.yml")
    with pytest.raises(ConfigurationError, match="commitment"):
        load_client_config(config_path=config_path, env={"ORE_COMMITMENT": "eventually"})


def test_negative_priority_fee_is_rejected(tmp_path: Path) -> None:
    config_path = _write_config(tmp_path / "config.yml")
    with pytest.raises(ConfigurationError):
        load_client_config(config_path=config_path, env={"ORE_PRIORITY_FEE": "-5"})


def test_non_mapping_yaml_is_rejected(tmp_path: Path) -> None:
    config_path = tmp_path / "config.yml"
    config_path.write_text("- just\n- a list\n")
    with pytest.raises(ConfigurationError, match="mapping"):
        load_client_config(config_path=config_path, env={})


def test_submitter_settings_from_env() -> None:
    settings = SubmitterSettings.from_env(
        {
            "ORE_CONFIRM_ATTEMPTS": "5",
            "ORE_CONFIRM_INTERVAL": "0.5",
            "ORE_MAX_EXPIRY_RETRIES": "not-a-number",
            "ORE_BLOCKHASH_REFRESH_SECONDS": "-1",
        }
    )

    assert settings.confirm_attempts == 5
    assert settings.confirm_interval == 0.5
    assert settings.max_expiry_retries == 3
    assert settings.blockhash_refresh_interval == 10.0


def test_admin_commands_flag() -> None:
    assert admin_commands_enabled({}) is False
    assert admin_commands_enabled({"ORE_CLI_ENABLE_ADMIN": "yes"}) is True
    assert admin_commands_enabled({"ORE_CLI_ENABLE_ADMIN": "0"}) is False
    assert admin_commands_enabled({"ORE_CLI_ENABLE_ADMIN": "maybe"}) is False


def test_load_keypair_reads_solana_cli_format(tmp_path: Path) -> None:
    keypair = Keypair()
    path = tmp_path / "id.json"
    path.write_text(json.dumps(list(bytes(keypair))))

    loaded = load_keypair(path)

    assert loaded.pubkey() == keypair.pubkey()


def test_load_keypair_missing_file(tmp_path: Path) -> None:
    with pytest.raises(KeypairError, match="Could not read keypair file"):
        load_keypair(tmp_path / "absent.json")


def test_load_keypair_rejects_wrong_length(tmp_path: Path) -> None:
    path = tmp_path / "id.json"
    path.write_text(json.dumps([1, 2, 3]))
    with pytest.raises(KeypairError, match="64-byte"):
        load_keypair(path)
