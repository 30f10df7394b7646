from resource_portal.db.base import Base
from resource_portal.models.audit import ActivityTimeline, AuditLog
from resource_portal.models.catalog import PropertyCatalog, ResourceCategory, ResourceTypeEntity
from resource_portal.models.employee import Employee
from resource_portal.models.resource import Resource, ResourceAssignment, ResourceItem
from resource_portal.models.workflow import AccessRequest, ApprovalWorkflow

__all__ = [
    "Base",
    "AccessRequest",
    "ActivityTimeline",
    "ApprovalWorkflow",
    "AuditLog",
    "Employee",
    "PropertyCatalog",
    "Resource",
    "ResourceAssignment",
    "ResourceCategory",
    "ResourceItem",
    "ResourceTypeEntity",
]
