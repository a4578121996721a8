"""Domain modules package."""

from slotkeeper.modules.audit import models as audit_models  # noqa: F401
from slotkeeper.modules.availability import models as availability_models  # noqa: F401
from slotkeeper.modules.booking import models as booking_models  # noqa: F401
from slotkeeper.modules.booking_requests import models as booking_requests_models  # noqa: F401
from slotkeeper.modules.calendar import models as calendar_models  # noqa: F401
from slotkeeper.modules.event_types import models as event_types_models  # noqa: F401
from slotkeeper.modules.identity import models as identity_models  # noqa: F401
from slotkeeper.modules.notifications import models as notifications_models  # noqa: F401
