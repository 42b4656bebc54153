from sqlalchemy.orm import Session
from fastapi import HTTPException, status
from typing import List

from ..models import Cabinet
from ..schemas.cabinet import CabinetCreate, CabinetUpdate


class CabinetService:
    """Cabinets are practice data and always stay in the cloud database."""

    def __init__(self, db: Session, osteopath_id: int):
        self.db = db
        self.osteopath_id = osteopath_id

    def list_cabinets(self) -> List[Cabinet]:
        return self.db.query(Cabinet).filter(
            Cabinet.osteopath_id == self.osteopath_id
        ).order_by(Cabinet.id).all()

    def get_cabinet(self, cabinet_id: int) -> Cabinet:
        cabinet = self.db.query(Cabinet).filter(
            Cabinet.id == cabinet_id,
            Cabinet.osteopath_id == self.osteopath_id
        ).first()
        if not cabinet:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Cabinet not found"
            )
        return cabinet

    def create_cabinet(self, data: CabinetCreate) -> Cabinet:
        cabinet = Cabinet(osteopath_id=self.osteopath_id, **data.model_dump())
        self.db.add(cabinet)
        self.db.commit()
        self.db.refresh(cabinet)
        return cabinet

    def update_cabinet(self, cabinet_id: int, data: CabinetUpdate) -> Cabinet:
        cabinet = self.get_cabinet(cabinet_id)
        for key, value in data.model_dump(exclude_unset=True).items():
            setattr(cabinet, key, value)
        self.db.commit()
        self.db.refresh(cabinet)
        return cabinet

    def delete_cabinet(self, cabinet_id: int) -> None:
        cabinet = self.get_cabinet(cabinet_id)
        self.db.delete(cabinet)
        self.db.commit()
