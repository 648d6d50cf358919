"""
Read API over the entitlement store.

Every public method reads the snapshot exactly once, so lookups made within one
call are always answered from the same snapshot even if a renewal lands
meanwhile.

Unknown feature keys resolve to ``default_feature_enabled``, which is True
unless configured otherwise.  The permissive fallback is product policy: an
instance that has not (yet) loaded a license keeps every feature available
instead of locking users out.  Keys listed in FEATURE_FALLBACKS are exempt.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from licensekeeper.licensing.features import (
    DEFAULT_PLAN_NAME,
    FEATURE_FALLBACKS,
    PLAN_NAME_KEY,
    QUOTA_FALLBACKS,
    UNLIMITED_QUOTA,
    FeatureCode,
    QuotaCode,
    feature_key,
)
from licensekeeper.licensing.snapshot import EntitlementSnapshot
from licensekeeper.licensing.store import EntitlementStore


class FeatureResolver:
    """
    Answers feature, quota and plan questions from the current snapshot.
    Never raises for unknown keys and never fails before the first load.
    """

    def __init__(self, store: EntitlementStore, default_feature_enabled: bool = True):
        self._store = store
        self.default_feature_enabled = default_feature_enabled

    def _feature(self, snapshot: EntitlementSnapshot, key: str) -> bool:
        if key in snapshot.boolean_features:
            return bool(snapshot.boolean_features[key])
        return FEATURE_FALLBACKS.get(key, self.default_feature_enabled)

    @staticmethod
    def _quota(snapshot: EntitlementSnapshot, key: str) -> int:
        value = snapshot.numeric_quotas.get(key)
        if value is None:
            return QUOTA_FALLBACKS.get(key, UNLIMITED_QUOTA)
        return int(value)

    def is_feature_enabled(self, feature) -> bool:
        return self._feature(self._store.read(), feature_key(feature))

    def get_quota(self, quota) -> int:
        """Quota value, or UNLIMITED_QUOTA when the license sets none."""
        return self._quota(self._store.read(), feature_key(quota))

    def get_plan_name(self) -> str:
        return self._store.read().plan_name or DEFAULT_PLAN_NAME

    def is_within_limit(self, quota, current_usage: int) -> bool:
        """
        Check whether current_usage is still below the quota.

        Args:
            quota: QuotaCode or raw quota key
            current_usage: Amount consumed so far

        Returns:
            True if the quota is unlimited or current_usage < quota
        """
        limit = self.get_quota(quota)
        return limit == UNLIMITED_QUOTA or current_usage < limit

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return self._store.read().is_expired(now)

    def get_consumer_id(self) -> str:
        return self._store.read().consumer_id

    def get_current_entitlements(self) -> List[Dict]:
        """List the granted features and quotas of the current snapshot."""
        snapshot = self._store.read()
        entitlements = [
            {"key": key, "type": "feature", "value": bool(value)}
            for key, value in sorted(snapshot.boolean_features.items())
        ]
        entitlements.extend(
            {"key": key, "type": "quota", "value": int(value)}
            for key, value in sorted(snapshot.numeric_quotas.items())
        )
        return entitlements

    def get_feature_value(self, key) -> Optional[Union[bool, int, str]]:
        """
        Raw value of one entitlement, without defaults or fallbacks.

        "planName" returns the plan name of a loaded license.  Keys the
        snapshot does not carry return None.
        """
        snapshot = self._store.read()
        key = feature_key(key)
        if key == PLAN_NAME_KEY:
            return snapshot.plan_name if snapshot.is_loaded else None
        if key in snapshot.boolean_features:
            return bool(snapshot.boolean_features[key])
        if key in snapshot.numeric_quotas:
            return int(snapshot.numeric_quotas[key])
        return None

    def get_main_plan(self) -> Optional[Dict[str, Any]]:
        """Plan name, validity window and grants of the loaded license."""
        snapshot = self._store.read()
        if not snapshot.is_loaded:
            return None
        return {
            "plan_name": snapshot.plan_name,
            "valid_from": snapshot.valid_from,
            "valid_to": snapshot.valid_to,
            "features": dict(snapshot.boolean_features),
            "quotas": dict(snapshot.numeric_quotas),
        }

    def get_info(self) -> str:
        """One-line human readable summary of the loaded license."""
        snapshot = self._store.read()
        if not snapshot.is_loaded:
            return "n/a"
        valid_to = snapshot.valid_to.isoformat() if snapshot.valid_to else "never"
        return (
            f"plan={snapshot.plan_name} consumer={snapshot.consumer_id} "
            f"version={snapshot.version} valid_to={valid_to}"
        )

    # Named feature checks

    def is_sharing_enabled(self) -> bool:
        return self.is_feature_enabled(FeatureCode.SHARING)

    def is_ldap_enabled(self) -> bool:
        return self.is_feature_enabled(FeatureCode.LDAP)

    def is_saml_enabled(self) -> bool:
        return self.is_feature_enabled(FeatureCode.SAML)

    def is_log_streaming_enabled(self) -> bool:
        return self.is_feature_enabled(FeatureCode.LOG_STREAMING)

    def is_variables_enabled(self) -> bool:
        return self.is_feature_enabled(FeatureCode.VARIABLES)

    def is_source_control_licensed(self) -> bool:
        return self.is_feature_enabled(FeatureCode.SOURCE_CONTROL)

    def is_external_secrets_enabled(self) -> bool:
        return self.is_feature_enabled(FeatureCode.EXTERNAL_SECRETS)

    def is_workflow_history_licensed(self) -> bool:
        return self.is_feature_enabled(FeatureCode.WORKFLOW_HISTORY)

    def is_api_disabled(self) -> bool:
        return self.is_feature_enabled(FeatureCode.API_DISABLED)

    def is_multiple_main_instances_licensed(self) -> bool:
        return self.is_feature_enabled(FeatureCode.MULTIPLE_MAIN_INSTANCES)

    def is_worker_view_licensed(self) -> bool:
        return self.is_feature_enabled(FeatureCode.WORKER_VIEW)

    def is_ai_assistant_enabled(self) -> bool:
        return self.is_feature_enabled(FeatureCode.AI_ASSISTANT)

    def is_ask_ai_enabled(self) -> bool:
        return self.is_feature_enabled(FeatureCode.ASK_AI)

    def is_advanced_execution_filters_enabled(self) -> bool:
        return self.is_feature_enabled(FeatureCode.ADVANCED_EXECUTION_FILTERS)

    def is_advanced_permissions_licensed(self) -> bool:
        return self.is_feature_enabled(FeatureCode.ADVANCED_PERMISSIONS)

    def is_debug_in_editor_licensed(self) -> bool:
        return self.is_feature_enabled(FeatureCode.DEBUG_IN_EDITOR)

    def is_binary_data_s3_licensed(self) -> bool:
        return self.is_feature_enabled(FeatureCode.BINARY_DATA_S3)

    def is_project_role_admin_licensed(self) -> bool:
        return self.is_feature_enabled(FeatureCode.PROJECT_ROLE_ADMIN)

    def is_project_role_editor_licensed(self) -> bool:
        return self.is_feature_enabled(FeatureCode.PROJECT_ROLE_EDITOR)

    def is_project_role_viewer_licensed(self) -> bool:
        return self.is_feature_enabled(FeatureCode.PROJECT_ROLE_VIEWER)

    def is_custom_npm_registry_enabled(self) -> bool:
        return self.is_feature_enabled(FeatureCode.COMMUNITY_NODES_CUSTOM_REGISTRY)

    # Named quota lookups

    def get_users_limit(self) -> int:
        return self.get_quota(QuotaCode.USERS_LIMIT)

    def get_trigger_limit(self) -> int:
        return self.get_quota(QuotaCode.TRIGGER_LIMIT)

    def get_variables_limit(self) -> int:
        return self.get_quota(QuotaCode.VARIABLES_LIMIT)

    def get_workflow_history_prune_limit(self) -> int:
        return self.get_quota(QuotaCode.WORKFLOW_HISTORY_PRUNE_LIMIT)

    def get_team_project_limit(self) -> int:
        return self.get_quota(QuotaCode.TEAM_PROJECT_LIMIT)

    def is_within_users_limit(self) -> bool:
        return self.get_users_limit() == UNLIMITED_QUOTA
