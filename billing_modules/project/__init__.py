"""
Project Module.

Projects, milestones, and billable tasks: the units the billing engine
invoices.  Completion and invoicing run through the Billing Orchestrator;
this module sets units up and answers lookups.
"""

from billing_modules.project.models import Milestone, Project, ProjectStatus, Task
from billing_modules.project.service import ProjectService, TaskConversion

__all__ = [
    "Milestone",
    "Project",
    "ProjectStatus",
    "Task",
    "ProjectService",
    "TaskConversion",
]
