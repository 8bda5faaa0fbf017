from sports_api.db.models.team import Team
from sports_api.db.models.user import User
from sports_api.db.models.user_team import UserTeam
from sports_api.db.models.verification_code import VerificationCode

__all__ = ["Team", "User", "UserTeam", "VerificationCode"]
