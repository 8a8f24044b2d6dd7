"""Application-wide constants.

Shared limits and defaults for the tenant boundary.
"""

# Firm codes (tenant slugs)
MAX_SLUG_LENGTH = 63
FIRM_CODE_PATTERN = r"^[A-Za-z0-9_-]+$"

# String field lengths
MAX_EMAIL_LENGTH = 255
MAX_NAME_LENGTH = 255
MAX_IPV6_LENGTH = 45
MAX_USER_AGENT_LENGTH = 512
MAX_ROLE_NAME_LENGTH = 32
MAX_STATUS_LENGTH = 20
MAX_PROVISIONING_ERROR_LENGTH = 2000

# Ghost sessions
DEFAULT_GHOST_SESSION_SECONDS = 3600
GHOST_SESSION_EXPIRY_SWEEP_MINUTES = {0, 5, 10, 15, 20, 25, 30, 35, 40, 45, 50, 55}

# Migrations
BASELINE_MIGRATION_NAME = "baseline"
CUSTOM_MIGRATION_NAME = "custom_migration"

# Token settings
ACCESS_TOKEN_JTI_LENGTH = 32

# Secret key requirements
MIN_SECRET_KEY_LENGTH = 32
DEFAULT_INSECURE_SECRET = "change-me-in-production"
