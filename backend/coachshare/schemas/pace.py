from pydantic import BaseModel


class PaceRequest(BaseModel):
    total_distance: float
    # "MM:SS.ms", "SS.ms" or a bare number of seconds
    target_time: str | float
    effort_percentage: float = 100


class PaceSplit(BaseModel):
    distance: float
    time: str


class PaceResponse(BaseModel):
    total_distance: float
    effort_percentage: float
    splits: list[PaceSplit]
