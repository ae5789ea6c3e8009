import pytest
import yaml

from daredevil.config import Settings


def _settings(tmp_path, monkeypatch) -> Settings:
    monkeypatch.chdir(tmp_path)
    return Settings(data_dir=tmp_path)


def test_missing_config_file_keeps_defaults(tmp_path, monkeypatch) -> None:
    settings = _settings(tmp_path, monkeypatch)
    settings.load_yaml_config()

    assert settings.ledger.poll_interval_seconds == 10
    assert settings.bets.default_limit == 50
    assert settings.bets.strict_pick_derivation is False


def test_yaml_sections_merge_over_defaults(tmp_path, monkeypatch) -> None:
    (tmp_path / "config.yaml").write_text(
        yaml.safe_dump(
            {
                "ledger": {"poll_interval_seconds": 30},
                "bets": {"strict_pick_derivation": True},
                "supabase": {"max_retries": 5},
                "unrelated": {"x": 1},
            }
        )
    )
    settings = _settings(tmp_path, monkeypatch)
    settings.load_yaml_config()

    assert settings.ledger.poll_interval_seconds == 30
    assert settings.ledger.transaction_limit == 50
    assert settings.bets.strict_pick_derivation is True
    assert settings.bets.validate_picks is True
    assert settings.supabase_config().max_retries == 5


def test_invalid_yaml_is_reported(tmp_path, monkeypatch) -> None:
    (tmp_path / "config.yaml").write_text("ledger: [unclosed\n")
    settings = _settings(tmp_path, monkeypatch)

    with pytest.raises(yaml.YAMLError):
        settings.load_yaml_config()


def test_supabase_config_uses_environment(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("SUPABASE_URL", "https://project.supabase.co")
    monkeypatch.setenv("SUPABASE_ANON_KEY", "anon")
    settings = _settings(tmp_path, monkeypatch)

    config = settings.supabase_config()
    assert config.url == "https://project.supabase.co"
    assert config.anon_key == "anon"
