from .profile import EnvironmentProfile, load_profile, REQUIRED_KEYS
from .redact import redact_mapping, redact_string as redact_secrets

__all__ = ["EnvironmentProfile", "load_profile", "REQUIRED_KEYS", "redact_mapping", "redact_secrets"]
