import pytest

from satpass.config import load_config


def test_defaults():
	cfg = load_config(None, env={})
	assert cfg.server.port == 3000
	assert cfg.cache.ttl_hours == 24
	assert cfg.prediction.window_hours == 24
	assert cfg.prediction.open_pass_policy == "discard"
	assert "celestrak" in cfg.source.url


def test_env_overrides(monkeypatch):
	monkeypatch.setenv("SATPASS_PORT", "8080")
	monkeypatch.setenv("SATPASS_CACHE_TTL_H", "6")
	monkeypatch.setenv("SATPASS_OPEN_PASS_POLICY", "Flush")
	cfg = load_config(None)
	assert cfg.server.port == 8080
	assert cfg.cache.ttl_hours == 6
	assert cfg.prediction.open_pass_policy == "flush"


def test_file_merge(tmp_path):
	cfg_file = tmp_path / "cfg.yaml"
	cfg_file.write_text(
		"""
		observer:
		  lat: 10
		  lon: -70
		  alt: 100
		source:
		  timeout: 3
		prediction:
		  window: 6
		  open_pass_policy: flush
		""",
		encoding="utf-8",
	)
	cfg = load_config(str(cfg_file), env={})
	assert cfg.observer.latitude_deg == 10
	assert cfg.observer.longitude_deg == -70
	assert cfg.observer.altitude_m == 100
	assert cfg.source.timeout_sec == 3
	assert cfg.prediction.window_hours == 6
	assert cfg.prediction.open_pass_policy == "flush"


def test_env_wins_over_file(tmp_path):
	cfg_file = tmp_path / "cfg.yaml"
	cfg_file.write_text("server:\n  port: 5000\n", encoding="utf-8")
	cfg = load_config(str(cfg_file), env={"SATPASS_PORT": "6000"})
	assert cfg.server.port == 6000


def test_unknown_open_pass_policy_rejected():
	with pytest.raises(ValueError):
		load_config(None, env={"SATPASS_OPEN_PASS_POLICY": "extend"})


def test_negative_window_rejected():
	with pytest.raises(ValueError):
		load_config(None, env={"SATPASS_WINDOW_H": "-1"})


def test_zero_window_allowed():
	cfg = load_config(None, env={"SATPASS_WINDOW_H": "0"})
	assert cfg.prediction.window_hours == 0


def test_log_level_from_env_and_file(tmp_path):
	assert load_config(None, env={"SATPASS_LOG_LEVEL": "debug"}).logging.level == "DEBUG"
	cfg_file = tmp_path / "cfg.yaml"
	cfg_file.write_text("logging:\n  level: warning\n", encoding="utf-8")
	assert load_config(str(cfg_file), env={}).logging.level == "WARNING"
	with pytest.raises(ValueError):
		load_config(None, env={"SATPASS_LOG_LEVEL": "loud"})
