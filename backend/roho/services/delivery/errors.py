"""Delivery domain exceptions raised by store adapters"""


class DeliveryError(Exception):
    """Base class for expected delivery-domain failures"""


class RecordNotFound(DeliveryError):
    """A referenced order, queue entry, booking or payment does not exist"""

    def __init__(self, kind: str, record_id: str):
        super().__init__(f"{kind} {record_id} not found")
        self.kind = kind
        self.record_id = record_id


class InvalidTransition(DeliveryError):
    """A status change that would skip a step or move backwards"""

    def __init__(self, kind: str, record_id: str, current: str, target: str):
        super().__init__(f"{kind} {record_id}: cannot move {current} -> {target}")
        self.kind = kind
        self.record_id = record_id
        self.current = current
        self.target = target
