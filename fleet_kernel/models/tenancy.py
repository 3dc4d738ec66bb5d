"""
Module: fleet_kernel.models.tenancy
Responsibility: ORM persistence for the tenancy graph: companies, their
    clients, contact persons with their company/client associations, and
    drivers.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Client.company_id is NOT NULL and references companies.id.
    - A ContactPersonClientCompany row names a company, a client, or both
      (check constraint).  Whether the client belongs to the named company
      is checked by TenancyService because it spans two tables.
    - One ContactPerson / Driver profile per user account (unique user_id).

Soft delete:
    Company, Client, ContactPerson and Driver carry ``is_deleted``.  Rows
    are never hard-deleted; readers filter through
    ``selectors.base.active_only``.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fleet_kernel.db.base import TimestampedBase, UUIDString
from fleet_kernel.domain.dtos import (
    ClientRecord,
    CompanyRecord,
    ContactPersonRecord,
    DriverRecord,
)
from fleet_kernel.domain.scope import DriverProfile


class Company(TimestampedBase):
    """Root tenancy unit. Renamed, never hard-deleted."""

    __tablename__ = "companies"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    def to_dto(self) -> CompanyRecord:
        return CompanyRecord(id=self.id, name=self.name)

    def __repr__(self) -> str:
        return f"<Company {self.name!r} id={self.id}>"


class Client(TimestampedBase):
    """A customer of exactly one company."""

    __tablename__ = "clients"

    __table_args__ = (
        Index("ix_clients_company_id", "company_id"),
    )

    company_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("companies.id"), nullable=False,
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    address: Mapped[str | None] = mapped_column(String(300), nullable=True)
    postcode: Mapped[str | None] = mapped_column(String(20), nullable=True)
    city: Mapped[str | None] = mapped_column(String(100), nullable=True)
    country: Mapped[str | None] = mapped_column(String(100), nullable=True)
    phone_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    email: Mapped[str | None] = mapped_column(String(200), nullable=True)
    remark: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    company: Mapped[Company] = relationship(Company, lazy="joined")

    def to_dto(self) -> ClientRecord:
        return ClientRecord(
            id=self.id,
            company_id=self.company_id,
            name=self.name,
            address=self.address,
            postcode=self.postcode,
            city=self.city,
            country=self.country,
            phone_number=self.phone_number,
            email=self.email,
            remark=self.remark,
        )

    def __repr__(self) -> str:
        return f"<Client {self.name!r} company={self.company_id}>"


class ContactPerson(TimestampedBase):
    """Customer-side user profile; scope comes from its associations."""

    __tablename__ = "contact_persons"

    user_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False, unique=True)
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    associations: Mapped[list["ContactPersonClientCompany"]] = relationship(
        "ContactPersonClientCompany",
        back_populates="contact_person",
        lazy="selectin",
        cascade="all, delete-orphan",
    )

    def to_dto(self) -> ContactPersonRecord:
        return ContactPersonRecord(
            id=self.id,
            user_id=self.user_id,
            company_ids=frozenset(a.company_id for a in self.associations if a.company_id),
            client_ids=frozenset(a.client_id for a in self.associations if a.client_id),
        )


class ContactPersonClientCompany(TimestampedBase):
    """Tagged association: grants scope to a company, a client, or both."""

    __tablename__ = "contact_person_client_companies"

    __table_args__ = (
        CheckConstraint(
            "company_id IS NOT NULL OR client_id IS NOT NULL",
            name="ck_cpcc_company_or_client",
        ),
        UniqueConstraint(
            "contact_person_id", "company_id", "client_id",
            name="uq_cpcc_association",
        ),
        Index("ix_cpcc_contact_person_id", "contact_person_id"),
    )

    contact_person_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("contact_persons.id"), nullable=False,
    )
    company_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("companies.id"), nullable=True,
    )
    client_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("clients.id"), nullable=True,
    )

    contact_person: Mapped[ContactPerson] = relationship(
        ContactPerson, back_populates="associations",
    )


class Driver(TimestampedBase):
    """Driver profile. ``company_id`` is null until the driver is assigned."""

    __tablename__ = "drivers"

    __table_args__ = (
        Index("ix_drivers_company_id", "company_id"),
    )

    user_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False, unique=True)
    company_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("companies.id"), nullable=True,
    )
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    # Owned by the notification collaborator; the kernel only stores it.
    telegram_chat_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    def to_dto(self) -> DriverRecord:
        return DriverRecord(id=self.id, user_id=self.user_id, company_id=self.company_id)

    def to_profile(self) -> DriverProfile:
        return DriverProfile(id=self.id, user_id=self.user_id, company_id=self.company_id)

    def __repr__(self) -> str:
        return f"<Driver id={self.id} company={self.company_id}>"
