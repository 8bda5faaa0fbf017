import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from sports_api.core.api_response import success_response_payload
from sports_api.core.errors import ValidationError
from sports_api.core.observability import log_business_event
from sports_api.core.security import get_current_user
from sports_api.db.models.team import Team
from sports_api.db.models.user import User
from sports_api.db.models.user_team import UserTeam
from sports_api.db.session import get_db
from sports_api.schemas.onboarding import CompleteOnboardingIn, FavoriteTeamsIn

router = APIRouter(prefix="/onboarding", tags=["onboarding"])
logger = logging.getLogger(__name__)


def _utc_now_naive() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


@router.post("/complete")
def complete_onboarding(
    payload: CompleteOnboardingIn,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    current_user.first_name = payload.first_name
    current_user.display_name = payload.first_name
    current_user.onboarding_completed = True
    current_user.updated_at = _utc_now_naive()
    db.commit()
    log_business_event(logger, request, event="onboarding.complete", user_id=current_user.id)
    return success_response_payload(request, message="Onboarding completed successfully")


@router.post("/teams")
def save_favorite_teams(
    payload: FavoriteTeamsIn,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    team_ids = list(dict.fromkeys(payload.team_ids))
    known = {team_id for (team_id,) in db.query(Team.id).filter(Team.id.in_(team_ids)).all()}
    unknown = [team_id for team_id in team_ids if team_id not in known]
    if unknown:
        raise ValidationError("Unknown team ids", details={"teamIds": unknown})

    now = _utc_now_naive()
    db.query(UserTeam).filter(UserTeam.user_id == current_user.id).delete(synchronize_session=False)
    db.add_all(
        [
            UserTeam(user_id=current_user.id, team_id=team_id, sport=payload.sport, favorited_at=now)
            for team_id in team_ids
        ]
    )
    db.commit()

    count = len(team_ids)
    log_business_event(logger, request, event="onboarding.teams", user_id=current_user.id, count=count)
    return success_response_payload(
        request,
        message=f"Successfully saved {count} favorite team{'s' if count != 1 else ''}",
        count=count,
    )
