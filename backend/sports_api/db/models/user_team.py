from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from sports_api.db.base import Base


class UserTeam(Base):
    __tablename__ = "user_to_team"
    __table_args__ = (UniqueConstraint("user_id", "team_id", name="uq_user_to_team_user_team"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    team_id: Mapped[int] = mapped_column(ForeignKey("teams.id", ondelete="CASCADE"), index=True)
    sport: Mapped[str] = mapped_column(String(20))
    favorited_at: Mapped[datetime] = mapped_column(DateTime)
