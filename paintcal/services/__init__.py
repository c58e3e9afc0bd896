from paintcal.services import (
    no_work_day_service,
    notification_service,
    policy,
    project_service,
    subscriptions,
    task_service,
    user_service,
)


__all__ = [
    "no_work_day_service",
    "notification_service",
    "policy",
    "project_service",
    "subscriptions",
    "task_service",
    "user_service",
]
