"""
SQLAlchemy ORM models for the ReadAloud schema.

Tables: ``recordings``.
"""

from datetime import UTC, datetime

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from readaloud.services.storage.database import Base


class Recording(Base):
    """One submitted reading of a script.

    ``s3_filepath`` stays ``None`` until the audio object has been written
    and the follow-up update succeeded.
    """

    __tablename__ = "recordings"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    submission_date: Mapped[datetime] = mapped_column(
        default=lambda: datetime.now(UTC), index=True
    )
    script_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    script_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    transcription: Mapped[str | None] = mapped_column(Text, nullable=True)
    s3_filepath: Mapped[str | None] = mapped_column(String(512), nullable=True)
    accuracy_score: Mapped[float | None] = mapped_column(nullable=True)

    def __repr__(self) -> str:
        return f"<Recording id={self.id} s3_filepath={self.s3_filepath!r}>"
