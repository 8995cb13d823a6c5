"""Navigator Vault process-level settings."""
import os

# request key where the authentication layer leaves the caller identity
VAULT_USER_KEY = os.environ.get("VAULT_USER_KEY", "user_id")

# bounds applied by callers before asking for a generated password
PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 64
PASSWORD_DEFAULT_LENGTH = 16
