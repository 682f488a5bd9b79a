import enum

class Role(str, enum.Enum):
    admin = "admin"
    manager = "manager"
    staff = "staff"

class ActivityType(str, enum.Enum):
    receive = "RECEIVE"
    transfer = "TRANSFER"
    sale = "SALE"
    adjustment = "ADJUSTMENT"
    update = "UPDATE"
    delete = "DELETE"
