from __future__ import annotations

import re
from typing import Dict

TOKENISH = re.compile(r"(?i)(secret|token|password|passwd|apikey|api_key|credential)")
HEX_LONG = re.compile(r"\b[0-9a-f]{32,}\b", re.I)
# KEY=value, KEY: value and "KEY": "value" where KEY looks secret
ASSIGNMENT = re.compile(
    r"(?i)\b(\w*(?:secret|token|password|passwd|apikey|api_key|credential)\w*)"
    r"([\"']?\s*[=:]\s*)(\"[^\"]*\"|'[^']*'|[^\s,;]+)"
)
REDACTED = "[REDACTED]"


def is_secret_key(key: str) -> bool:
    return bool(TOKENISH.search(key))


def redact_string(s: str) -> str:
    """Mask secret assignments and long hex tokens, leaving the rest readable."""
    s = ASSIGNMENT.sub(lambda m: f"{m.group(1)}{m.group(2)}{REDACTED}", s)
    return HEX_LONG.sub(REDACTED, s)


def redact_mapping(d: Dict[str, str]) -> Dict[str, str]:
    return {k: (REDACTED if is_secret_key(k) else redact_string(v)) for k, v in d.items()}
