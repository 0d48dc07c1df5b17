"""
Intent Graph Configuration
Loads settings from environment variables
"""

import os
from typing import Optional
from dotenv import load_dotenv
from loguru import logger

# Load environment variables
load_dotenv()


CLOSED_SESSION_POLICIES = ("reject", "restart")


class Settings:
    """Engine settings loaded from environment"""

    # Query limits
    DEFAULT_LIMIT: int = int(os.getenv("INTENT_GRAPH_DEFAULT_LIMIT", "10"))
    MAX_LIMIT: int = int(os.getenv("INTENT_GRAPH_MAX_LIMIT", "100"))

    # Ingestion
    BOUNCE_OUTCOME: str = os.getenv("INTENT_GRAPH_BOUNCE_OUTCOME", "bounce")
    CLOSED_SESSION_POLICY: str = os.getenv("INTENT_GRAPH_CLOSED_SESSION_POLICY", "reject")

    # Signal log replayed on app startup (JSON lines)
    SIGNAL_LOG: Optional[str] = os.getenv("INTENT_GRAPH_SIGNAL_LOG") or None

    # API Configuration
    API_HOST: str = os.getenv("INTENT_GRAPH_API_HOST", "0.0.0.0")
    API_PORT: int = int(os.getenv("INTENT_GRAPH_API_PORT", "8010"))

    @property
    def closed_session_policy(self) -> str:
        """Validated closed-session policy ("reject" or "restart")"""
        policy = self.CLOSED_SESSION_POLICY.strip().lower()
        if policy not in CLOSED_SESSION_POLICIES:
            logger.warning(
                f"Unknown closed session policy '{self.CLOSED_SESSION_POLICY}', using 'reject'"
            )
            return "reject"
        return policy

    def clamp_limit(self, limit: Optional[int]) -> int:
        """
        Normalize a caller-supplied limit

        Requests above MAX_LIMIT are capped, not rejected; query results
        flag the cap with metadata["limitClamped"].

        Args:
            limit: Requested number of rows (None = DEFAULT_LIMIT)

        Returns:
            int: Limit in [0, MAX_LIMIT]

        Raises:
            ValueError: limit is not a number
        """
        if limit is None:
            limit = self.DEFAULT_LIMIT
        return max(0, min(int(limit), self.MAX_LIMIT))


# Global settings instance
settings = Settings()
