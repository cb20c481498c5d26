from typing import List, Optional
import uuid

from sqlalchemy import (
    Boolean,
    DECIMAL,
    DateTime,
    Enum,
    ForeignKeyConstraint,
    Index,
    Integer,
    JSON,
    String,
    Text,
    text,
)
from sqlalchemy.orm import Mapped, declarative_base, mapped_column, relationship

from .utils.dates import utcnow

Base = declarative_base()
metadata = Base.metadata

APPOINTMENT_STATUSES = ("pending", "confirmed", "completed", "cancelled", "no_show")
PAYMENT_STATUSES = ("pending", "paid", "partial", "refunded")
BOOKING_CHANNELS = ("form", "voice", "phone", "walk_in")


def new_id():
    return str(uuid.uuid4())


class User(Base):
    __tablename__ = "users"
    __table_args__ = (Index("uq_users_email", "email", unique=True),)

    # Subject claim issued by the identity provider
    id = mapped_column(String(128), primary_key=True)
    email = mapped_column(String(255))
    first_name = mapped_column(String(100))
    last_name = mapped_column(String(100))
    profile_image_url = mapped_column(String(500))
    salon_name = mapped_column(String(120))
    role = mapped_column(String(32), nullable=False, server_default=text("'salon_owner'"))
    stripe_customer_id = mapped_column(String(255))
    created_at = mapped_column(DateTime, nullable=False, default=utcnow)
    updated_at = mapped_column(
        DateTime, nullable=False, default=utcnow, onupdate=utcnow
    )

    salon: Mapped[List["Salon"]] = relationship(
        "Salon", uselist=True, back_populates="owner"
    )


class Salon(Base):
    __tablename__ = "salons"
    __table_args__ = (
        ForeignKeyConstraint(
            ["owner_id"], ["users.id"], ondelete="RESTRICT", name="fk_salon_owner"
        ),
        Index("idx_salon_owner", "owner_id"),
    )

    id = mapped_column(String(36), primary_key=True, default=new_id)
    owner_id = mapped_column(String(128), nullable=False)
    name = mapped_column(String(120), nullable=False)
    address = mapped_column(Text)
    phone = mapped_column(String(25))
    email = mapped_column(String(255))
    hours = mapped_column(JSON)
    socials = mapped_column(JSON)
    policies = mapped_column(JSON)
    branding = mapped_column(JSON)
    created_at = mapped_column(DateTime, nullable=False, default=utcnow)
    updated_at = mapped_column(DateTime, nullable=False, default=utcnow)

    owner: Mapped["User"] = relationship("User", back_populates="salon")
    service: Mapped[List["Service"]] = relationship(
        "Service", uselist=True, back_populates="salon"
    )
    stylist: Mapped[List["Stylist"]] = relationship(
        "Stylist", uselist=True, back_populates="salon"
    )
    client: Mapped[List["Client"]] = relationship(
        "Client", uselist=True, back_populates="salon"
    )
    appointment: Mapped[List["Appointment"]] = relationship(
        "Appointment", uselist=True, back_populates="salon"
    )
    review: Mapped[List["Review"]] = relationship(
        "Review", uselist=True, back_populates="salon"
    )


class Service(Base):
    __tablename__ = "services"
    __table_args__ = (
        ForeignKeyConstraint(
            ["salon_id"], ["salons.id"], ondelete="RESTRICT", name="fk_serv_salon"
        ),
        Index("idx_serv_salon", "salon_id"),
    )

    id = mapped_column(String(36), primary_key=True, default=new_id)
    salon_id = mapped_column(String(36), nullable=False)
    name = mapped_column(String(120), nullable=False)
    description = mapped_column(Text)
    duration_minutes = mapped_column(Integer, nullable=False)
    price = mapped_column(DECIMAL(10, 2), nullable=False)
    tags = mapped_column(JSON)
    requires_deposit = mapped_column(Boolean, nullable=False, default=False)
    buffer_before = mapped_column(Integer, nullable=False, default=0)
    buffer_after = mapped_column(Integer, nullable=False, default=0)
    processing_time = mapped_column(Integer, nullable=False, default=0)
    is_active = mapped_column(Boolean, nullable=False, default=True)
    created_at = mapped_column(DateTime, nullable=False, default=utcnow)

    salon: Mapped["Salon"] = relationship("Salon", back_populates="service")


class Stylist(Base):
    __tablename__ = "stylists"
    __table_args__ = (
        ForeignKeyConstraint(
            ["salon_id"], ["salons.id"], ondelete="RESTRICT", name="fk_sty_salon"
        ),
        Index("idx_sty_salon", "salon_id"),
    )

    id = mapped_column(String(36), primary_key=True, default=new_id)
    salon_id = mapped_column(String(36), nullable=False)
    first_name = mapped_column(String(100), nullable=False)
    last_name = mapped_column(String(100), nullable=False)
    email = mapped_column(String(255))
    phone = mapped_column(String(25))
    photo_url = mapped_column(String(500))
    specialties = mapped_column(JSON)
    schedule = mapped_column(JSON)
    vacations = mapped_column(JSON)
    is_active = mapped_column(Boolean, nullable=False, default=True)
    created_at = mapped_column(DateTime, nullable=False, default=utcnow)

    salon: Mapped["Salon"] = relationship("Salon", back_populates="stylist")
    appointment: Mapped[List["Appointment"]] = relationship(
        "Appointment", uselist=True, back_populates="stylist"
    )

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}"


class Client(Base):
    __tablename__ = "clients"
    __table_args__ = (
        ForeignKeyConstraint(
            ["salon_id"], ["salons.id"], ondelete="RESTRICT", name="fk_cl_salon"
        ),
        # Phone is expected to be unique per salon but not enforced
        Index("idx_cl_salon_phone", "salon_id", "phone"),
    )

    id = mapped_column(String(36), primary_key=True, default=new_id)
    salon_id = mapped_column(String(36), nullable=False)
    first_name = mapped_column(String(100), nullable=False)
    last_name = mapped_column(String(100), nullable=False)
    email = mapped_column(String(255))
    phone = mapped_column(String(25), nullable=False)
    preferences = mapped_column(JSON)
    notes = mapped_column(Text)
    total_visits = mapped_column(Integer, nullable=False, default=0)
    total_spent = mapped_column(DECIMAL(10, 2), nullable=False, default=0)
    last_visit = mapped_column(DateTime)
    created_at = mapped_column(DateTime, nullable=False, default=utcnow)

    salon: Mapped["Salon"] = relationship("Salon", back_populates="client")
    appointment: Mapped[List["Appointment"]] = relationship(
        "Appointment", uselist=True, back_populates="client"
    )
    review: Mapped[List["Review"]] = relationship(
        "Review", uselist=True, back_populates="client"
    )


class Appointment(Base):
    __tablename__ = "appointments"
    __table_args__ = (
        ForeignKeyConstraint(["salon_id"], ["salons.id"], name="fk_ap_salon"),
        ForeignKeyConstraint(["client_id"], ["clients.id"], name="fk_ap_client"),
        ForeignKeyConstraint(["stylist_id"], ["stylists.id"], name="fk_ap_stylist"),
        Index("idx_ap_salon_start", "salon_id", "start_time"),
        Index("idx_ap_stylist_start", "stylist_id", "start_time"),
        Index("uq_ap_submission_token", "submission_token", unique=True),
    )

    id = mapped_column(String(36), primary_key=True, default=new_id)
    salon_id = mapped_column(String(36), nullable=False)
    client_id = mapped_column(String(36), nullable=False)
    stylist_id = mapped_column(String(36))
    service_ids = mapped_column(JSON, nullable=False)
    # name/price/duration of each service as booked
    service_snapshot = mapped_column(JSON)
    start_time = mapped_column(DateTime, nullable=False)
    end_time = mapped_column(DateTime, nullable=False)
    status = mapped_column(
        Enum(*APPOINTMENT_STATUSES, name="appointment_status"),
        nullable=False,
        default="pending",
    )
    channel = mapped_column(
        Enum(*BOOKING_CHANNELS, name="booking_channel"), nullable=False, default="form"
    )
    total_amount = mapped_column(DECIMAL(10, 2), nullable=False)
    deposit_amount = mapped_column(DECIMAL(10, 2))
    payment_status = mapped_column(
        Enum(*PAYMENT_STATUSES, name="payment_status"),
        nullable=False,
        default="pending",
    )
    stripe_payment_intent_id = mapped_column(String(255))
    notes = mapped_column(Text)
    cancelled_at = mapped_column(DateTime)
    cancellation_reason = mapped_column(Text)
    submission_token = mapped_column(String(64))
    created_at = mapped_column(DateTime, nullable=False, default=utcnow)
    updated_at = mapped_column(DateTime, nullable=False, default=utcnow)

    salon: Mapped["Salon"] = relationship("Salon", back_populates="appointment")
    client: Mapped["Client"] = relationship("Client", back_populates="appointment")
    stylist: Mapped[Optional["Stylist"]] = relationship(
        "Stylist", back_populates="appointment"
    )


class Review(Base):
    __tablename__ = "reviews"
    __table_args__ = (
        ForeignKeyConstraint(
            ["salon_id"], ["salons.id"], ondelete="CASCADE", name="fk_rv_salon"
        ),
        ForeignKeyConstraint(
            ["client_id"], ["clients.id"], ondelete="CASCADE", name="fk_rv_client"
        ),
        ForeignKeyConstraint(
            ["appointment_id"], ["appointments.id"], name="fk_rv_appointment"
        ),
        ForeignKeyConstraint(["stylist_id"], ["stylists.id"], name="fk_rv_stylist"),
        Index("idx_rv_salon_created", "salon_id", "created_at"),
    )

    id = mapped_column(String(36), primary_key=True, default=new_id)
    salon_id = mapped_column(String(36), nullable=False)
    client_id = mapped_column(String(36), nullable=False)
    appointment_id = mapped_column(String(36))
    stylist_id = mapped_column(String(36))
    rating = mapped_column(Integer, nullable=False)
    comment = mapped_column(Text)
    is_public = mapped_column(Boolean, nullable=False, default=True)
    response = mapped_column(Text)
    created_at = mapped_column(DateTime, nullable=False, default=utcnow)

    salon: Mapped["Salon"] = relationship("Salon", back_populates="review")
    client: Mapped["Client"] = relationship("Client", back_populates="review")


class VoiceCall(Base):
    __tablename__ = "voice_calls"
    __table_args__ = (
        ForeignKeyConstraint(["salon_id"], ["salons.id"], name="fk_vc_salon"),
        ForeignKeyConstraint(["client_id"], ["clients.id"], name="fk_vc_client"),
        Index("idx_vc_salon", "salon_id", "created_at"),
    )

    id = mapped_column(String(36), primary_key=True, default=new_id)
    salon_id = mapped_column(String(36), nullable=False)
    client_temp_id = mapped_column(String(64))
    client_id = mapped_column(String(36))
    transcript = mapped_column(Text)
    intent = mapped_column(String(32))
    entities = mapped_column(JSON)
    result = mapped_column(JSON)
    duration = mapped_column(Integer)
    status = mapped_column(String(16), nullable=False, default="completed")
    created_at = mapped_column(DateTime, nullable=False, default=utcnow)
