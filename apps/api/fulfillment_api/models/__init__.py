# Import SQLAlchemy models so they register on Base.metadata
from fulfillment_api.models.tracking_event import FulfillmentEvent  # noqa: F401
from fulfillment_api.models.tracking_record import (  # noqa: F401
    FulfillmentRecord,
    FulfillmentStatus,
)
