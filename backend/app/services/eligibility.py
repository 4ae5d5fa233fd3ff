"""Conversion eligibility policy."""

from app.constants import FREE_CONVERSION_LIMIT
from app.models.account import Decision, Principal, UserProfile
from app.services.quota_ledger import remaining


class ConversionEligibilityPolicy:
    """Decides whether a principal may run a conversion.

    Pure: the decision depends only on authentication, premium status and
    conversion count. Callers re-run it at commit time instead of trusting
    the decision taken when the request was submitted.
    """

    def __init__(self, free_limit: int = FREE_CONVERSION_LIMIT) -> None:
        self.free_limit = free_limit

    def evaluate(self, principal: Principal, profile: UserProfile) -> Decision:
        if not principal.is_authenticated:
            return Decision.REQUIRES_LOGIN
        if profile.is_premium:
            return Decision.ALLOWED
        if remaining(profile, self.free_limit) <= 0:
            return Decision.REQUIRES_UPGRADE
        return Decision.ALLOWED
