"""Centralized constants for the add-on manager."""

# Versions
PRODUCT_VERSION = "0.5.3"

# Stack artefact format versions.
# 0.1 stacks were created by the legacy stack-management service and carry no
# stack-format label; they can only be recognised by their absence of one.
# 0.2.0 shipped with a migration bug for image-prefilled volumes, 0.2.1 fixed it.
LEGACY_STACK_VERSION = "0.1"
CURRENT_STACK_VERSION = "0.2.1"

# Labels
PRODUCT_VERSION_LABEL = "com.weidmueller.uc.aom.version"
STACK_VERSION_LABEL = "com.weidmueller.uc.aom.stack.version"
DOCKER_COMPOSE_PROJECT = "com.docker.compose.project"

# Manifest
DOCKER_COMPOSE_TYPE = "docker-compose"
ENVIRONMENT_VARIABLES_GROUP = "environmentVariables"
SUPPORTED_COMPOSE_FILE_VERSION = "2"
COMPOSE_FILENAME = "docker-compose.yml"

# Volume drivers
LOCAL_PUBLIC_VOLUME_DRIVER = "local-public"
LOCAL_PUBLIC_ACCESS_VOLUME_DRIVER = "local-public-access"
VOLUME_STATE_KEY = "state"

# Legacy control plane
LEGACY_API_BASE_PATH = "/api"
LEGACY_ADMIN_USER_KEY = "PORTAINER_LOCAL_ADMIN_USER"
LEGACY_ADMIN_PASSWORD_KEY = "PORTAINER_LOCAL_ADMIN_PW"

# Environment Variables
ENV_ADDON_MANAGER_CONFIG = "ADDON_MANAGER_CONFIG"

# Logging
LOG_INIT_MESSAGE = "Logging system initialized"
MAIN_LOG_FILE = "addon_manager.log"
MIGRATION_LOG_FILE = "migration.log"

# Migration bookkeeping
PENDING_MIGRATION_SUFFIX = ".migration-pending"

# Security-related field names for filtering
SECURITY_FIELDS = [
    "password",
    "passwd",
    "pwd",
    "token",
    "jwt",
    "authorization",
    "credential",
]
