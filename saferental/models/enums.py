from enum import Enum


class UserType(str, Enum):
    TENANT = "tenant"
    LANDLORD = "landlord"


class ContactType(str, Enum):
    EMAIL = "email"
    PHONE = "phone"


class FileRole(str, Enum):
    TENANT = "tenant"
    LANDLORD = "landlord"


class DeliveryStatus(str, Enum):
    PENDING = "pending"
    GENERATING = "generating"
    DELIVERED = "delivered"
    FAILED = "failed"
