"""Directory module: Department, Team, Employee models read by the leave core."""

from hr_leave.directory.models import Department, Employee, Team

__all__ = ["Department", "Employee", "Team"]
