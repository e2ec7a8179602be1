"""VehicleDetails Repository: vehicles are created alongside their booking."""

from sqlalchemy.orm import Session

from ..models.vehicle_details import VehicleDetails
from .base_repository import BaseRepository


class VehicleDetailsRepository(BaseRepository[VehicleDetails]):
    def __init__(self, db: Session):
        super().__init__(db, VehicleDetails)

    def create_for_owner(
        self, owner_id: str, *, license_plate: str, model: str, color: str
    ) -> VehicleDetails:
        return self.create(
            owner_id=owner_id, license_plate=license_plate, model=model, color=color
        )
