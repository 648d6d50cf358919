"""
Feature and quota key definitions for licensed entitlements.

FeatureCode: Boolean features that a license can switch on or off
QuotaCode: Numeric limits granted by a license
"""

from enum import Enum

# Quota value meaning "no limit"
UNLIMITED_QUOTA = -1

# Plan name reported while no plan has been loaded
DEFAULT_PLAN_NAME = "Community"

# Consumer id reported while no license has been loaded
UNKNOWN_CONSUMER_ID = "unknown"

# Entitlement key under which the plan name is looked up
PLAN_NAME_KEY = "planName"


class FeatureCode(str, Enum):
    """
    Boolean feature keys as issued by the license authority.
    """

    SHARING = "feat:sharing"
    LDAP = "feat:ldap"
    SAML = "feat:saml"
    LOG_STREAMING = "feat:logStreaming"
    ADVANCED_EXECUTION_FILTERS = "feat:advancedExecutionFilters"
    VARIABLES = "feat:variables"
    SOURCE_CONTROL = "feat:sourceControl"
    API_DISABLED = "feat:apiDisabled"
    EXTERNAL_SECRETS = "feat:externalSecrets"
    SHOW_NON_PROD_BANNER = "feat:showNonProdBanner"
    WORKFLOW_HISTORY = "feat:workflowHistory"
    DEBUG_IN_EDITOR = "feat:debugInEditor"
    BINARY_DATA_S3 = "feat:binaryDataS3"
    MULTIPLE_MAIN_INSTANCES = "feat:multipleMainInstances"
    WORKER_VIEW = "feat:workerView"
    ADVANCED_PERMISSIONS = "feat:advancedPermissions"
    PROJECT_ROLE_ADMIN = "feat:projectRole:admin"
    PROJECT_ROLE_EDITOR = "feat:projectRole:editor"
    PROJECT_ROLE_VIEWER = "feat:projectRole:viewer"
    AI_ASSISTANT = "feat:aiAssistant"
    ASK_AI = "feat:askAi"
    COMMUNITY_NODES_CUSTOM_REGISTRY = "feat:communityNodes:customRegistry"

    @classmethod
    def from_string(cls, value: str) -> "FeatureCode":
        """Convert string to FeatureCode enum."""
        try:
            return cls(value)
        except ValueError as exc:
            raise ValueError(f"Unknown feature code: {value}") from exc


class QuotaCode(str, Enum):
    """
    Numeric quota keys as issued by the license authority.
    """

    TRIGGER_LIMIT = "quota:activeWorkflows"
    VARIABLES_LIMIT = "quota:maxVariables"
    USERS_LIMIT = "quota:users"
    WORKFLOW_HISTORY_PRUNE_LIMIT = "quota:workflowHistoryPrune"
    TEAM_PROJECT_LIMIT = "quota:maxTeamProjects"

    @classmethod
    def from_string(cls, value: str) -> "QuotaCode":
        """Convert string to QuotaCode enum."""
        try:
            return cls(value)
        except ValueError as exc:
            raise ValueError(f"Unknown quota code: {value}") from exc


# Features whose fallback is not the blanket default.  Reporting the banner as
# enabled without a license would show it on every unlicensed instance.
FEATURE_FALLBACKS = {
    FeatureCode.SHOW_NON_PROD_BANNER.value: False,
}

# Quotas whose fallback is not UNLIMITED_QUOTA
QUOTA_FALLBACKS = {
    QuotaCode.TEAM_PROJECT_LIMIT.value: 0,
}


def feature_key(feature) -> str:
    """Accept either a FeatureCode/QuotaCode or a raw key string."""
    if isinstance(feature, Enum):
        return feature.value
    return str(feature)
