"""
Environment profile: the flat KEY=VALUE file shared by setup and deploy.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, Iterator, Optional

from shipyard.errors import EnvProfileError

REQUIRED_KEYS = (
    "NEXT_PUBLIC_RABBITMQ_HOST",
    "NEXT_PUBLIC_RABBITMQ_PORT",
    "NEXT_PUBLIC_RABBITMQ_VHOST",
    "RABBITMQ_USERNAME",
    "RABBITMQ_PASSWORD",
)

ENV_LINE = re.compile(r"^(?:export\s+)?([A-Za-z_][A-Za-z0-9_]*)=(.*)$")


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        return value[1:-1]
    return value


@dataclass
class EnvironmentProfile:
    values: Dict[str, str] = field(default_factory=dict)
    source: Optional[str] = None

    @classmethod
    def parse(cls, text: str, source: Optional[str] = None) -> "EnvironmentProfile":
        values: Dict[str, str] = {}
        for lineno, raw in enumerate(text.splitlines(), start=1):
            line = raw.strip()
            if not line or line.startswith("#"):
                continue
            m = ENV_LINE.match(line)
            if not m:
                raise EnvProfileError(f"{source or 'env file'}:{lineno}: expected KEY=VALUE, got {raw!r}")
            values[m.group(1)] = _unquote(m.group(2).strip())
        return cls(values=values, source=source)

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self.values.get(key, default)

    def __getitem__(self, key: str) -> str:
        return self.values[key]

    def __contains__(self, key: object) -> bool:
        return key in self.values

    def __iter__(self) -> Iterator[str]:
        return iter(self.values)

    def require(self, keys: Iterable[str] = REQUIRED_KEYS) -> None:
        """Raise EnvProfileError naming every required key that is missing or empty."""
        missing = [k for k in keys if not self.values.get(k)]
        if missing:
            raise EnvProfileError(
                f"Missing required keys in {self.source or 'environment profile'}: {', '.join(missing)}",
                missing_keys=missing,
                hint="Edit the env file created by 'shipyard setup'",
            )

    def port(self, fallback: int) -> int:
        """PORT from the profile, or the configured app port when absent."""
        raw = self.values.get("PORT")
        if not raw:
            return fallback
        try:
            port = int(raw)
        except ValueError:
            raise EnvProfileError(f"PORT must be an integer, got {raw!r}")
        if not 1 <= port <= 65535:
            raise EnvProfileError(f"PORT out of range: {port}")
        return port

    def as_env(self) -> Dict[str, str]:
        return dict(self.values)


def load_profile(path: Path) -> EnvironmentProfile:
    path = Path(path)
    if not path.exists():
        raise EnvProfileError(
            f"No environment file found: {path}",
            hint=f"Create {path.name} with your variables or run 'shipyard setup'",
        )
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise EnvProfileError(f"Cannot read {path}: {e}") from e
    return EnvironmentProfile.parse(text, source=str(path))
