from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Optional
from datetime import datetime, timezone

import yaml
from dotenv import load_dotenv

LOG_FILE = "satpass.log"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def ensure_dir(path: Path) -> None:
	path.mkdir(parents=True, exist_ok=True)


def setup_logging(log_dir: Path, console_level: str | int = logging.INFO) -> None:
	"""Log everything to a rotating file and `console_level` and up to stderr.

	Flask's development server logs one INFO line per request through
	"werkzeug"; those go to the file only.
	"""
	root = logging.getLogger()
	if root.handlers:
		return  # already configured
	ensure_dir(log_dir)
	root.setLevel(logging.DEBUG)

	file_handler = RotatingFileHandler(log_dir / LOG_FILE, maxBytes=5_000_000, backupCount=3)
	file_handler.setLevel(logging.DEBUG)
	file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S%z"))
	root.addHandler(file_handler)

	console_handler = logging.StreamHandler()
	console_handler.setLevel(console_level)
	console_handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
	console_handler.addFilter(lambda record: record.name != "werkzeug" or record.levelno > logging.INFO)
	root.addHandler(console_handler)


def utc_now() -> datetime:
	return datetime.now(timezone.utc)


def as_utc(dt: datetime) -> datetime:
	"""Treat naive datetimes as UTC; convert aware ones to UTC."""
	if dt.tzinfo is None:
		return dt.replace(tzinfo=timezone.utc)
	return dt.astimezone(timezone.utc)


def _untab(line: str) -> str:
	stripped = line.lstrip("\t")
	return "  " * (len(line) - len(stripped)) + stripped


def load_yaml(path: str | Path) -> Optional[dict[str, Any]]:
	p = Path(path)
	if not p.exists():
		return None
	# YAML does not allow tab indentation
	text = "\n".join(_untab(line) for line in p.read_text(encoding="utf-8").splitlines())
	return yaml.safe_load(text)


def load_dotenv_if_present(env_path: Optional[str | Path] = None) -> None:
	"""Load SATPASS_* settings from a .env file; a missing file is not an error."""
	if env_path is not None:
		load_dotenv(dotenv_path=str(env_path))
	else:
		load_dotenv()
