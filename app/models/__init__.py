from app.models.profile import Profile  # noqa: F401
from app.models.subscription import (  # noqa: F401
    ENTITLED_STATUSES,
    Subscription,
    SubscriptionStatus,
)
