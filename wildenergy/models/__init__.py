# Wild Energy models - one module per domain
from wildenergy.models.memberModel import Member
from wildenergy.models.membershipsModel import Plan, PlanGroup, Subscription, GroupSessionBalance
from wildenergy.models.classModel import Group, Category, GymClass, Course, Registration, CheckIn

__all__ = [
    "Member",
    "Plan", "PlanGroup", "Subscription", "GroupSessionBalance",
    "Group", "Category", "GymClass", "Course", "Registration", "CheckIn",
]
