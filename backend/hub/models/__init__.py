from hub.models.user import User, Student, University, Company, Admin
from hub.models.event import Event, EventTag
from hub.models.participation import EventParticipation
from hub.models.engagement import LikedEvent, SavedEvent, SavedPost
from hub.models.subscription import Subscription
from hub.models.notification import Notification

__all__ = [
    "User",
    "Student",
    "University",
    "Company",
    "Admin",
    "Event",
    "EventTag",
    "EventParticipation",
    "LikedEvent",
    "SavedEvent",
    "SavedPost",
    "Subscription",
    "Notification",
]
