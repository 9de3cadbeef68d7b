"""Lightweight .env loader for local configuration."""

from __future__ import annotations

import os
from pathlib import Path


def default_env_path() -> Path:
  """Return the default .env path at the repo root."""

  return Path(__file__).resolve().parents[2] / ".env"


def load_env_file(path: Path, *, override: bool = False) -> None:
  """Load key=value pairs from a .env file into the process environment."""

  if not path.is_file():
    return

  for raw_line in path.read_text(encoding="utf-8").splitlines():
    line = raw_line.strip()
    if not line or line.startswith("#"):
      continue
    if line.startswith("export "):
      line = line[len("export ") :].lstrip()
    key, sep, value = line.partition("=")
    key = key.strip()
    if not sep or not key:
      continue
    value = _unquote(value.strip())
    # Real environment wins unless the caller explicitly asks otherwise.
    if not override and key in os.environ:
      continue
    os.environ[key] = value


def _unquote(value: str) -> str:
  if len(value) >= 2 and value[0] == value[-1] and value[0] in {'"', "'"}:
    return value[1:-1]
  return value
