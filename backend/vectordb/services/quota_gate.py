"""
Quota gate: atomic check-and-increment of monthly usage counters.
"""
import logging
from typing import Union
from uuid import UUID

from vectordb.db.platform import PlatformClient
from vectordb.models.billing import UsageMetricKind

logger = logging.getLogger(__name__)

CHECK_AND_INCREMENT = "check_usage_limit_and_increment"


class QuotaGate:
    """
    Admission check against an organization's plan limits.

    The comparison and the increment happen in one stored procedure call,
    so concurrent requests cannot both take the last slot. A denied call
    leaves the counter untouched. Platform errors propagate unchanged;
    they are never read as an admit or a deny.
    """

    def __init__(self, platform: PlatformClient):
        self.platform = platform

    async def admit(
        self,
        organization_id: Union[str, UUID],
        metric: UsageMetricKind,
        amount: int = 1,
    ) -> bool:
        """
        Reserve `amount` units of `metric` for the current month.

        Args:
            organization_id: Tenant whose counter is checked
            metric: UsageMetricKind.RECORDS or UsageMetricKind.QUERIES
            amount: Units to reserve (batch writes reserve one per document)

        Returns:
            True if the units were reserved, False if the plan limit would be exceeded.

        Raises:
            ValueError: If amount is not positive.
            PlatformError: If the remote call fails.
        """
        if amount < 1:
            raise ValueError("amount must be positive")

        admitted = await self.platform.rpc_scalar(
            CHECK_AND_INCREMENT,
            {
                "org_id": UUID(str(organization_id)),
                "metric": UsageMetricKind(metric).value,
                "amount": amount,
            },
        )

        if not admitted:
            logger.warning(
                f"Quota denied for organization {organization_id}: "
                f"{UsageMetricKind(metric).value} +{amount}"
            )
        return bool(admitted)
