"""Assignment ORM model."""

from datetime import datetime, timezone

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from edutrack.database import Base

QUESTION_TYPES = ("multiple_choice", "short_answer", "long_answer", "true_false")


class Assignment(Base):
    __tablename__ = "assignments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    instructions: Mapped[str | None] = mapped_column(Text, nullable=True)
    # [{"id", "text", "type", "options", "correct_answer", "points", "order"}]
    questions: Mapped[list[dict]] = mapped_column(JSON, default=list)
    total_points: Mapped[int] = mapped_column(Integer, default=0)
    due_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    class_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("classes.id"), nullable=False
    )
    created_by: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=False
    )
    # [{"student_id", "answers", "score", "percentage", "feedback",
    #   "submitted_at", "graded_at", "graded_by"}]
    submissions: Mapped[list[dict]] = mapped_column(JSON, default=list)
    is_published: Mapped[bool] = mapped_column(Boolean, default=False)
    allow_late_submission: Mapped[bool] = mapped_column(Boolean, default=False)
    late_penalty: Mapped[int] = mapped_column(Integer, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=lambda: datetime.now(timezone.utc)
    )

    def submission_for(self, student_id: int) -> dict | None:
        for sub in self.submissions or []:
            if sub["student_id"] == student_id:
                return sub
        return None
