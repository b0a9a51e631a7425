import yaml

from auslan_tutor.config import (
    API_KEY_ENV,
    TutorConfig,
    is_valid_api_key,
    load_config,
    save_config,
)


def test_missing_file_gives_defaults(tmp_path, monkeypatch):
    monkeypatch.delenv(API_KEY_ENV, raising=False)
    config = load_config(tmp_path / "absent.yaml")
    assert config == TutorConfig()
    assert config.capture.interval_ms == 3000
    assert config.capture.min_confidence == 0.3
    assert not config.remote.has_valid_key


def test_yaml_sections_override_defaults_and_ignore_unknown(tmp_path, monkeypatch):
    monkeypatch.delenv(API_KEY_ENV, raising=False)
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump({
        "capture": {"interval_ms": 1500, "bogus": 1},
        "presence": {"skin_threshold": 0.05},
        "storage": {"progress_path": str(tmp_path / "p.json")},
        "unknown_section": {"x": 1},
    }))

    config = load_config(path)

    assert config.capture.interval_ms == 1500
    assert config.presence.skin_threshold == 0.05
    assert config.presence.alpha_threshold == 200
    assert config.storage.progress_path == str(tmp_path / "p.json")


def test_environment_key_wins(tmp_path, monkeypatch):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump({"remote": {"api_key": "sk-from-file-0000000000000"}}))
    monkeypatch.setenv(API_KEY_ENV, "sk-from-env-11111111111111")

    assert load_config(path).remote.api_key == "sk-from-env-11111111111111"


def test_unreadable_yaml_gives_defaults(tmp_path, monkeypatch):
    monkeypatch.delenv(API_KEY_ENV, raising=False)
    path = tmp_path / "config.yaml"
    path.write_text("camera: [unclosed")
    assert load_config(path) == TutorConfig()

    path.write_text("- just\n- a list\n")
    assert load_config(path) == TutorConfig()


def test_save_then_load_round_trip(tmp_path, monkeypatch):
    monkeypatch.delenv(API_KEY_ENV, raising=False)
    config = TutorConfig()
    config.remote.api_key = "sk-saved-key-0123456789abc"
    path = save_config(config, tmp_path / "nested" / "config.yaml")

    assert load_config(path).remote.api_key == "sk-saved-key-0123456789abc"


def test_api_key_shape():
    assert is_valid_api_key("sk-" + "x" * 20)
    assert not is_valid_api_key("sk-short")
    assert not is_valid_api_key("pk-" + "x" * 30)
    assert not is_valid_api_key("")
    assert not is_valid_api_key(None)
