from pydantic import Field

from sports_api.schemas.auth import CamelModel


class CompleteOnboardingIn(CamelModel):
    first_name: str = Field(alias="firstName", min_length=1, max_length=100)


class FavoriteTeamsIn(CamelModel):
    team_ids: list[int] = Field(alias="teamIds", min_length=1, max_length=64)
    sport: str = Field(default="nfl", min_length=1, max_length=20)
