from travelcrm.db.base import Base
from travelcrm.models.agency import Agency
from travelcrm.models.lead import Lead, LeadSource, LeadStatus
from travelcrm.models.lead_counter import LeadCounter

__all__ = [
    "Base",
    "Agency",
    "Lead",
    "LeadCounter",
    "LeadSource",
    "LeadStatus",
]
