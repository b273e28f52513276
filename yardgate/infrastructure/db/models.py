"""
SQLAlchemy ORM models for database tables.

These models define the database schema and provide
persistence for domain entities.
"""

from datetime import datetime

from sqlalchemy import (
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class ContainerDB(Base):
    """
    Database model for containers tracked in the yard.

    Date columns are free text: they come from operators and
    spreadsheet imports and may hold sentinels such as "EMPATIO".
    """

    __tablename__ = "containers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    container_number: Mapped[str] = mapped_column(
        String(20),
        unique=True,
        nullable=False,
        index=True,
    )
    armador: Mapped[str] = mapped_column(String(100), default="", nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(100), default="", nullable=False)
    container_type: Mapped[str] = mapped_column(String(20), default="", nullable=False)
    operator: Mapped[str] = mapped_column(String(100), default="", nullable=False)

    entry_date: Mapped[str] = mapped_column(String(20), default="", nullable=False)
    entry_plate: Mapped[str] = mapped_column(String(20), default="", nullable=False)
    entry_driver: Mapped[str] = mapped_column(String(100), default="", nullable=False)

    exit_date: Mapped[str] = mapped_column(String(20), default="", nullable=False)
    exit_plate: Mapped[str] = mapped_column(String(20), default="", nullable=False)
    exit_driver: Mapped[str] = mapped_column(String(100), default="", nullable=False)

    return_depot: Mapped[str] = mapped_column(String(100), default="", nullable=False)
    origin: Mapped[str] = mapped_column(String(100), default="", nullable=False)
    demurrage: Mapped[str] = mapped_column(String(50), default="", nullable=False)

    tare_kg: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    max_gross_kg: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    free_time_days: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    remaining_days: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    files: Mapped[list["ContainerFileDB"]] = relationship(
        "ContainerFileDB",
        back_populates="container",
        cascade="all, delete-orphan",
        order_by="ContainerFileDB.id",
        lazy="selectin",
    )

    __table_args__ = (
        Index("ix_containers_remaining", "remaining_days", "exit_date"),
    )

    def __repr__(self) -> str:
        return f"<Container(number={self.container_number}, status={self.status})>"


class ContainerFileDB(Base):
    """
    Database model for files attached to a container.

    Gate photos land here; the bytes live in image storage.
    """

    __tablename__ = "container_files"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    container_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("containers.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    content_type: Mapped[str] = mapped_column(String(100), nullable=False)
    size: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    path: Mapped[str] = mapped_column(String(255), nullable=False)
    uploaded_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    container: Mapped["ContainerDB"] = relationship(
        "ContainerDB",
        back_populates="files",
    )

    def __repr__(self) -> str:
        return f"<ContainerFile(name={self.name}, container_id={self.container_id})>"
