# feature_gate.py
import logging

from errors import IngestionError
from schema import FeatureLimit

logger = logging.getLogger(__name__)

DENIED = FeatureLimit(allowed=False, current_usage=0, limit_value=0, unlimited=False)


class FeatureGate:
    """Plan limits, backed by the check_feature_limit / track_feature_usage RPCs."""

    def __init__(self, client):
        self.client = client

    def check_limit(self, user_id: str, feature_name: str) -> FeatureLimit:
        try:
            resp = self.client.rpc(
                "check_feature_limit",
                {"p_user_id": user_id, "p_feature_name": feature_name},
            ).execute()
        except Exception as e:
            logger.error("Feature limit check failed (user=%s, feature=%s): %s", user_id, feature_name, e)
            raise IngestionError("Failed to check feature limit") from e

        rows = resp.data or []
        if isinstance(rows, dict):
            rows = [rows]
        if not rows:
            return DENIED
        return FeatureLimit.model_validate(rows[0])

    def track_usage(self, user_id: str, feature_name: str, increment: int = 1) -> bool:
        try:
            resp = self.client.rpc(
                "track_feature_usage",
                {"p_user_id": user_id, "p_feature_name": feature_name, "p_increment": increment},
            ).execute()
        except Exception as e:
            logger.error("Tracking feature usage failed (user=%s, feature=%s): %s", user_id, feature_name, e)
            return False
        return bool(resp.data)
