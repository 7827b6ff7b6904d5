import enum

# un rejet supprime la sortie : pas d'état REJECTED
class ApprovalStatus(str, enum.Enum):
    pending = "PENDING"
    approved = "APPROVED"

class EventType(str, enum.Enum):
    receive = "receive"
    issue = "issue"
