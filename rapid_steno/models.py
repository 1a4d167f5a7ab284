# Importing every model module registers all tables on Base.metadata.
from .admin.models import AdminActivityLog
from .auth.models import SecretKey, User
from .catalog.models import Option, Question, Test, TestCategory, TestTopic
from .exam.models import Answer, Attempt
from .materials.models import Material, MaterialCategory
from .subscriptions.models import Plan, UserSubscription

__all__ = [
    "AdminActivityLog",
    "Answer",
    "Attempt",
    "Material",
    "MaterialCategory",
    "Option",
    "Plan",
    "Question",
    "SecretKey",
    "Test",
    "TestCategory",
    "TestTopic",
    "User",
    "UserSubscription",
]
