"""
Osteopath account lifecycle: demo -> active, any -> blocked, blocked -> demo.

Every transition appends an ``OsteopathStatusHistory`` row. Only
administrators reach this service (see ``api.v1.admin_osteopaths``).
"""
import logging
from typing import Dict, List, Optional

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from ..core.clock import utcnow
from ..models import Osteopath, OsteopathStatus, OsteopathStatusHistory

logger = logging.getLogger(__name__)


class OsteopathStatusService:
    def __init__(self, db: Session, now=None):
        self.db = db
        self._now = now or utcnow

    def _days_in_demo(self, osteopath: Osteopath) -> Optional[int]:
        if not osteopath.demo_started_at:
            return None
        return (self._now() - osteopath.demo_started_at).days

    def with_status(self, osteopath: Osteopath) -> Dict:
        return {
            "id": osteopath.id,
            "user_id": osteopath.user_id,
            "name": osteopath.name,
            "professional_title": osteopath.professional_title,
            "adeli_number": osteopath.adeli_number,
            "siret": osteopath.siret,
            "status": osteopath.status,
            "demo_started_at": osteopath.demo_started_at,
            "activated_at": osteopath.activated_at,
            "blocked_at": osteopath.blocked_at,
            "blocked_reason": osteopath.blocked_reason,
            "days_in_demo": self._days_in_demo(osteopath),
            "can_activate": osteopath.status == OsteopathStatus.DEMO,
        }

    def get_all_with_status(self) -> List[Dict]:
        osteopaths = self.db.query(Osteopath).order_by(Osteopath.created_at.desc(), Osteopath.id.desc()).all()
        return [self.with_status(o) for o in osteopaths]

    def get_osteopath(self, osteopath_id: int) -> Osteopath:
        osteopath = self.db.query(Osteopath).filter(Osteopath.id == osteopath_id).first()
        if not osteopath:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Osteopath not found"
            )
        return osteopath

    def _change_status(self, osteopath: Osteopath, new_status: OsteopathStatus,
                       reason: Optional[str], changed_by: Optional[int]) -> Osteopath:
        old_status = osteopath.status
        osteopath.status = new_status
        self.db.add(OsteopathStatusHistory(
            osteopath_id=osteopath.id,
            old_status=old_status,
            new_status=new_status,
            reason=reason,
            changed_by=changed_by,
        ))
        self.db.commit()
        self.db.refresh(osteopath)
        logger.info("Osteopath %s: %s -> %s", osteopath.id,
                    getattr(old_status, "value", old_status), new_status.value)
        return osteopath

    def activate(self, osteopath_id: int, reason: str = None, changed_by: int = None) -> Osteopath:
        osteopath = self.get_osteopath(osteopath_id)
        if osteopath.status != OsteopathStatus.DEMO:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Only osteopaths in demo mode can be activated"
            )
        osteopath.activated_at = self._now()
        return self._change_status(osteopath, OsteopathStatus.ACTIVE, reason, changed_by)

    def block(self, osteopath_id: int, reason: str, changed_by: int = None) -> Osteopath:
        if not reason or not reason.strip():
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="A reason is required to block an osteopath"
            )
        osteopath = self.get_osteopath(osteopath_id)
        if osteopath.status == OsteopathStatus.BLOCKED:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Osteopath is already blocked"
            )
        osteopath.blocked_at = self._now()
        osteopath.blocked_reason = reason
        return self._change_status(osteopath, OsteopathStatus.BLOCKED, reason, changed_by)

    def unblock(self, osteopath_id: int, changed_by: int = None) -> Osteopath:
        osteopath = self.get_osteopath(osteopath_id)
        if osteopath.status != OsteopathStatus.BLOCKED:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Osteopath is not blocked"
            )
        osteopath.blocked_at = None
        osteopath.blocked_reason = None
        return self._change_status(osteopath, OsteopathStatus.DEMO, "Unblocked", changed_by)

    def get_status_history(self, osteopath_id: int) -> List[OsteopathStatusHistory]:
        self.get_osteopath(osteopath_id)
        return self.db.query(OsteopathStatusHistory).filter(
            OsteopathStatusHistory.osteopath_id == osteopath_id
        ).order_by(OsteopathStatusHistory.id.desc()).all()

    def get_status_stats(self) -> List[Dict]:
        stats = []
        osteopaths = self.db.query(Osteopath).all()
        for osteopath_status in OsteopathStatus:
            group = [o for o in osteopaths if o.status == osteopath_status]
            days = [d for d in (self._days_in_demo(o) for o in group) if d is not None]
            stats.append({
                "status": osteopath_status,
                "count": len(group),
                "avg_days_in_demo": round(sum(days) / len(days), 1) if days else None,
            })
        return stats
