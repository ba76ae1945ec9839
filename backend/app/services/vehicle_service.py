"""
车辆服务
车牌统一存为去空格的大写形式，在中心内唯一
"""
from datetime import datetime
from typing import List, Optional
import logging
import re

from sqlalchemy.orm import Session

from app.models.ontology import Client, Vehicle
from app.models.schemas import VehicleCreate, VehicleUpdate
from app.services.errors import ConflictError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)


def normalize_plate(plate: str) -> str:
    return re.sub(r"\s+", "", plate or "").upper()


class VehicleService:
    """车辆服务"""

    def __init__(self, db: Session):
        self.db = db

    def _live(self, center_id: int):
        return self.db.query(Vehicle).filter(
            Vehicle.center_id == center_id,
            Vehicle.deleted_at.is_(None),
        )

    def get_vehicles(self, center_id: int, client_id: Optional[int] = None,
                     search: Optional[str] = None) -> List[Vehicle]:
        query = self._live(center_id)
        if client_id is not None:
            query = query.filter(Vehicle.client_id == client_id)
        if search:
            query = query.filter(Vehicle.plate_number.contains(normalize_plate(search)))
        return query.order_by(Vehicle.plate_number).all()

    def get_vehicle(self, center_id: int, vehicle_id: int) -> Vehicle:
        vehicle = self._live(center_id).filter(Vehicle.id == vehicle_id).first()
        if not vehicle:
            raise NotFoundError("Vehicle not found")
        return vehicle

    def find_by_plate(self, center_id: int, plate: str) -> Optional[Vehicle]:
        return self._live(center_id).filter(Vehicle.plate_number == normalize_plate(plate)).first()

    def _ensure_unique(self, center_id: int, plate: str, exclude_id: Optional[int] = None) -> None:
        query = self._live(center_id).filter(Vehicle.plate_number == plate)
        if exclude_id is not None:
            query = query.filter(Vehicle.id != exclude_id)
        if query.first():
            raise ConflictError(f"A vehicle with plate {plate} already exists")

    def add_vehicle(self, center_id: int, data: VehicleCreate) -> Vehicle:
        """只写入不提交（在更大的事务中使用）"""
        owner = self.db.query(Client).filter(
            Client.id == data.client_id,
            Client.center_id == center_id,
            Client.deleted_at.is_(None),
        ).first()
        if not owner:
            raise ValidationError("Client does not belong to this center")

        plate = normalize_plate(data.plate_number)
        if not plate:
            raise ValidationError("Plate number is required")
        self._ensure_unique(center_id, plate)

        fields = data.model_dump()
        fields["plate_number"] = plate
        vehicle = Vehicle(center_id=center_id, **fields)
        self.db.add(vehicle)
        self.db.flush()
        return vehicle

    def create_vehicle(self, center_id: int, data: VehicleCreate) -> Vehicle:
        vehicle = self.add_vehicle(center_id, data)
        self.db.commit()
        self.db.refresh(vehicle)
        logger.info(f"Vehicle {vehicle.plate_number} created for client {vehicle.client_id}")
        return vehicle

    def update_vehicle(self, center_id: int, vehicle_id: int, data: VehicleUpdate) -> Vehicle:
        vehicle = self.get_vehicle(center_id, vehicle_id)
        changes = data.model_dump(exclude_unset=True)
        if "plate_number" in changes:
            changes["plate_number"] = normalize_plate(changes["plate_number"])
            self._ensure_unique(center_id, changes["plate_number"], exclude_id=vehicle.id)
        for key, value in changes.items():
            setattr(vehicle, key, value)
        self.db.commit()
        self.db.refresh(vehicle)
        return vehicle

    def delete_vehicle(self, center_id: int, vehicle_id: int) -> None:
        vehicle = self.get_vehicle(center_id, vehicle_id)
        vehicle.deleted_at = datetime.utcnow()
        self.db.commit()
        logger.info(f"Vehicle {vehicle_id} soft-deleted")
