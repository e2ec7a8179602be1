"""Vehicle details attached to a single booking."""

from sqlalchemy import Column, String
from sqlalchemy.orm import validates

from ..core.ulid_helper import generate_ulid
from ..database import Base
from ..domain.time_range import utc_now
from .types import UTCDateTime


class VehicleDetails(Base):
    """Immutable once created; owned 1:1 by the booking that references it."""

    __tablename__ = "vehicle_details"

    id = Column(String(26), primary_key=True, default=generate_ulid)
    license_plate = Column(String(20), nullable=False)
    model = Column(String(100), nullable=False)
    color = Column(String(50), nullable=False)
    owner_id = Column(String(26), nullable=False, index=True)
    created_at = Column(UTCDateTime, nullable=False, default=utc_now)

    @validates("license_plate")
    def _normalize_plate(self, _key: str, value: str) -> str:
        return value.strip().upper()

    @validates("model", "color")
    def _strip(self, _key: str, value: str) -> str:
        return value.strip()

    def __repr__(self) -> str:
        return f"<VehicleDetails {self.license_plate}>"
