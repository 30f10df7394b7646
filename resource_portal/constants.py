from __future__ import annotations

# Legacy resource type column; the typed catalog maps onto these.
RESOURCE_TYPE_PHYSICAL = "PHYSICAL"
RESOURCE_TYPE_SOFTWARE = "SOFTWARE"
RESOURCE_TYPE_CLOUD = "CLOUD"
RESOURCE_TYPE_HARDWARE = "HARDWARE"

RESOURCE_TYPE_VALUES = (
    RESOURCE_TYPE_PHYSICAL,
    RESOURCE_TYPE_SOFTWARE,
    RESOURCE_TYPE_CLOUD,
)

RESOURCE_STATUS_ACTIVE = "ACTIVE"
RESOURCE_STATUS_RETURNED = "RETURNED"
RESOURCE_STATUS_LOST = "LOST"
RESOURCE_STATUS_DAMAGED = "DAMAGED"

RESOURCE_STATUS_VALUES = (
    RESOURCE_STATUS_ACTIVE,
    RESOURCE_STATUS_RETURNED,
    RESOURCE_STATUS_LOST,
    RESOURCE_STATUS_DAMAGED,
)

ITEM_STATUS_AVAILABLE = "AVAILABLE"
ITEM_STATUS_ASSIGNED = "ASSIGNED"
ITEM_STATUS_MAINTENANCE = "MAINTENANCE"
ITEM_STATUS_LOST = "LOST"
ITEM_STATUS_DAMAGED = "DAMAGED"

ITEM_STATUS_VALUES = (
    ITEM_STATUS_AVAILABLE,
    ITEM_STATUS_ASSIGNED,
    ITEM_STATUS_MAINTENANCE,
    ITEM_STATUS_LOST,
    ITEM_STATUS_DAMAGED,
)

ASSIGNMENT_TYPE_INDIVIDUAL = "INDIVIDUAL"
ASSIGNMENT_TYPE_POOLED = "POOLED"
ASSIGNMENT_TYPE_SHARED = "SHARED"

ASSIGNMENT_TYPE_VALUES = (
    ASSIGNMENT_TYPE_INDIVIDUAL,
    ASSIGNMENT_TYPE_POOLED,
    ASSIGNMENT_TYPE_SHARED,
)

ASSIGNMENT_STATUS_ACTIVE = "ACTIVE"
ASSIGNMENT_STATUS_RETURNED = "RETURNED"
ASSIGNMENT_STATUS_LOST = "LOST"
ASSIGNMENT_STATUS_DAMAGED = "DAMAGED"

ASSIGNMENT_STATUS_VALUES = (
    ASSIGNMENT_STATUS_ACTIVE,
    ASSIGNMENT_STATUS_RETURNED,
    ASSIGNMENT_STATUS_LOST,
    ASSIGNMENT_STATUS_DAMAGED,
)

PROPERTY_TYPE_STRING = "STRING"
PROPERTY_TYPE_NUMBER = "NUMBER"
PROPERTY_TYPE_BOOLEAN = "BOOLEAN"
PROPERTY_TYPE_DATE = "DATE"

PROPERTY_TYPE_VALUES = (
    PROPERTY_TYPE_STRING,
    PROPERTY_TYPE_NUMBER,
    PROPERTY_TYPE_BOOLEAN,
    PROPERTY_TYPE_DATE,
)

EMPLOYEE_STATUS_ACTIVE = "ACTIVE"
EMPLOYEE_STATUS_INACTIVE = "INACTIVE"
EMPLOYEE_STATUS_RESIGNED = "RESIGNED"
EMPLOYEE_STATUS_ON_LEAVE = "ON_LEAVE"

EMPLOYEE_STATUS_VALUES = (
    EMPLOYEE_STATUS_ACTIVE,
    EMPLOYEE_STATUS_INACTIVE,
    EMPLOYEE_STATUS_RESIGNED,
    EMPLOYEE_STATUS_ON_LEAVE,
)

ACCESS_STATUS_REQUESTED = "REQUESTED"
ACCESS_STATUS_APPROVED = "APPROVED"
ACCESS_STATUS_GRANTED = "GRANTED"
ACCESS_STATUS_REVOKED = "REVOKED"

ACCESS_STATUS_VALUES = (
    ACCESS_STATUS_REQUESTED,
    ACCESS_STATUS_APPROVED,
    ACCESS_STATUS_GRANTED,
    ACCESS_STATUS_REVOKED,
)

PERMISSION_LEVEL_VALUES = ("READ", "WRITE", "EDIT", "ADMIN")

WORKFLOW_STATUS_PENDING = "PENDING"
WORKFLOW_STATUS_APPROVED = "APPROVED"
WORKFLOW_STATUS_REJECTED = "REJECTED"
WORKFLOW_STATUS_CANCELLED = "CANCELLED"

WORKFLOW_STATUS_VALUES = (
    WORKFLOW_STATUS_PENDING,
    WORKFLOW_STATUS_APPROVED,
    WORKFLOW_STATUS_REJECTED,
    WORKFLOW_STATUS_CANCELLED,
)

WORKFLOW_TYPE_ACCESS_REQUEST = "ACCESS_REQUEST"

WORKFLOW_TYPE_VALUES = (
    "IT_EQUIPMENT_REQUEST",
    "SOFTWARE_LICENSE_REQUEST",
    "CLOUD_SERVICE_REQUEST",
    WORKFLOW_TYPE_ACCESS_REQUEST,
    "ELEVATED_ACCESS_REQUEST",
    "SYSTEM_ADMIN_REQUEST",
    "POLICY_UPDATE_REQUEST",
    "PROCEDURE_CHANGE_REQUEST",
    "COMPLIANCE_REVIEW_REQUEST",
    "EXPENSE_APPROVAL_REQUEST",
    "BUDGET_REQUEST",
    "VENDOR_PAYMENT_REQUEST",
    "HIRING_REQUEST",
    "ROLE_CHANGE_REQUEST",
    "TRAINING_REQUEST",
    "VENDOR_CONTRACT_REQUEST",
    "FACILITY_REQUEST",
    "TRAVEL_REQUEST",
)

CATEGORY_IT_OPERATIONS = "IT_OPERATIONS"
CATEGORY_SECURITY_ACCESS = "SECURITY_ACCESS"
CATEGORY_COMPLIANCE = "COMPLIANCE"
CATEGORY_FINANCIAL = "FINANCIAL"
CATEGORY_HUMAN_RESOURCES = "HUMAN_RESOURCES"
CATEGORY_GENERAL_OPERATIONS = "GENERAL_OPERATIONS"

OPERATIONAL_CATEGORY_VALUES = (
    CATEGORY_IT_OPERATIONS,
    CATEGORY_SECURITY_ACCESS,
    CATEGORY_COMPLIANCE,
    CATEGORY_FINANCIAL,
    CATEGORY_HUMAN_RESOURCES,
    CATEGORY_GENERAL_OPERATIONS,
)

PRIORITY_LOW = "LOW"
PRIORITY_MEDIUM = "MEDIUM"
PRIORITY_HIGH = "HIGH"
PRIORITY_URGENT = "URGENT"

PRIORITY_VALUES = (PRIORITY_LOW, PRIORITY_MEDIUM, PRIORITY_HIGH, PRIORITY_URGENT)

ENTITY_EMPLOYEE = "EMPLOYEE"
ENTITY_RESOURCE = "RESOURCE"
ENTITY_ITEM = "ITEM"
ENTITY_ASSIGNMENT = "ASSIGNMENT"
ENTITY_ACCESS = "ACCESS"
ENTITY_WORKFLOW = "APPROVAL_WORKFLOW"
ENTITY_CATALOG = "CATALOG"

ENTITY_TYPE_VALUES = (
    ENTITY_EMPLOYEE,
    ENTITY_RESOURCE,
    ENTITY_ITEM,
    ENTITY_ASSIGNMENT,
    ENTITY_ACCESS,
    ENTITY_WORKFLOW,
    ENTITY_CATALOG,
)

ACTIVITY_CREATED = "CREATED"
ACTIVITY_UPDATED = "UPDATED"
ACTIVITY_DELETED = "DELETED"
ACTIVITY_ASSIGNED = "ASSIGNED"
ACTIVITY_UNASSIGNED = "UNASSIGNED"
ACTIVITY_STATUS_CHANGED = "STATUS_CHANGED"
ACTIVITY_WORKFLOW_CREATED = "WORKFLOW_CREATED"
ACTIVITY_WORKFLOW_COMPLETED = "WORKFLOW_COMPLETED"
ACTIVITY_ACCESS_REQUESTED = "ACCESS_REQUESTED"
ACTIVITY_ACCESS_GRANTED = "ACCESS_GRANTED"
ACTIVITY_ACCESS_REVOKED = "ACCESS_REVOKED"
ACTIVITY_SCHEMA_LOCKED = "SCHEMA_LOCKED"
ACTIVITY_REASSIGNED = "REASSIGNED"
ACTIVITY_ONBOARDING_COMPLETED = "ONBOARDING_COMPLETED"

ACTIVITY_TYPE_VALUES = (
    ACTIVITY_CREATED,
    ACTIVITY_UPDATED,
    ACTIVITY_DELETED,
    ACTIVITY_ASSIGNED,
    ACTIVITY_UNASSIGNED,
    ACTIVITY_STATUS_CHANGED,
    ACTIVITY_WORKFLOW_CREATED,
    ACTIVITY_WORKFLOW_COMPLETED,
    ACTIVITY_ACCESS_REQUESTED,
    ACTIVITY_ACCESS_GRANTED,
    ACTIVITY_ACCESS_REVOKED,
    ACTIVITY_SCHEMA_LOCKED,
    ACTIVITY_REASSIGNED,
    ACTIVITY_ONBOARDING_COMPLETED,
)

# System catalog seeded on first start.
SYSTEM_RESOURCE_TYPES: dict[str, tuple[str, ...]] = {
    "Hardware": ("Laptop", "Desktop", "Phone", "Tablet", "Monitor", "Peripheral"),
    "Software": ("SaaS", "Desktop Application", "Development Tool", "Operating System"),
    "Cloud": ("Cloud Account", "Cloud Storage", "Cloud Compute", "Cloud Database"),
}

TYPE_NAME_TO_RESOURCE_TYPE: dict[str, str] = {
    "hardware": RESOURCE_TYPE_PHYSICAL,
    "physical": RESOURCE_TYPE_PHYSICAL,
    "software": RESOURCE_TYPE_SOFTWARE,
    "cloud": RESOURCE_TYPE_CLOUD,
}

MANDATORY_PROPERTIES: dict[str, tuple[str, ...]] = {
    RESOURCE_TYPE_PHYSICAL: ("serialNumber", "warrantyExpiry"),
    RESOURCE_TYPE_CLOUD: ("maxUsers",),
}

SYSTEM_PROPERTIES: tuple[tuple[str, str, str, str], ...] = (
    ("serialNumber", "Serial Number", PROPERTY_TYPE_STRING, "Unique serial number for hardware"),
    ("hostname", "Hostname", PROPERTY_TYPE_STRING, "Network hostname"),
    ("ipAddress", "IP Address", PROPERTY_TYPE_STRING, "Network IP address"),
    ("macAddress", "MAC Address", PROPERTY_TYPE_STRING, "Network MAC address"),
    ("operatingSystem", "Operating System", PROPERTY_TYPE_STRING, "OS name"),
    ("osVersion", "OS Version", PROPERTY_TYPE_STRING, "Operating system version"),
    ("processor", "Processor", PROPERTY_TYPE_STRING, "CPU model"),
    ("memory", "Memory", PROPERTY_TYPE_STRING, "RAM specification"),
    ("storage", "Storage", PROPERTY_TYPE_STRING, "Storage capacity"),
    ("licenseKey", "License Key", PROPERTY_TYPE_STRING, "Software license key"),
    ("softwareVersion", "Software Version", PROPERTY_TYPE_STRING, "Software version number"),
    ("licenseType", "License Type", PROPERTY_TYPE_STRING, "Perpetual, subscription, etc."),
    ("maxUsers", "Max Users", PROPERTY_TYPE_STRING, "Maximum number of users"),
    ("activationCode", "Activation Code", PROPERTY_TYPE_STRING, "Software activation code"),
    ("licenseExpiry", "License Expiry", PROPERTY_TYPE_DATE, "License expiration date"),
    ("purchaseDate", "Purchase Date", PROPERTY_TYPE_DATE, "Date of purchase"),
    ("warrantyExpiry", "Warranty Expiry", PROPERTY_TYPE_DATE, "Warranty expiration date"),
    ("value", "Value", PROPERTY_TYPE_NUMBER, "Monetary value"),
    ("accountId", "Account ID", PROPERTY_TYPE_STRING, "Cloud account identifier"),
    ("region", "Region", PROPERTY_TYPE_STRING, "Cloud region"),
    ("subscriptionTier", "Subscription Tier", PROPERTY_TYPE_STRING, "Subscription level"),
)

# Item property keys mirrored into dedicated columns for lookups.
ITEM_EXTRACTED_FIELDS: dict[str, str] = {
    "serialNumber": "serial_number",
    "hostname": "hostname",
    "ipAddress": "ip_address",
    "macAddress": "mac_address",
}
