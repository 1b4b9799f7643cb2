from datetime import datetime

from pydantic import BaseModel


class AchievementDefinition(BaseModel):
    id: str
    title: str
    description: str
    icon_name: str


class AchievementRead(AchievementDefinition):
    achieved: bool = True
    achieved_date: datetime
