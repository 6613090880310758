from pydantic import BaseModel, Field


class LaunchScore(BaseModel):
    analysis: str = Field(min_length=1)
    rating: int = Field(ge=0, le=10)  # -1 is reserved for "not rated"
    summary: str = Field(min_length=1)
