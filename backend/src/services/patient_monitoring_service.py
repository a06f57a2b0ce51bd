"""
Patient monitoring service: status snapshots and health data readings.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from core.constants import ROLE_PATIENT
from models import HealthData, PatientStatus, User
from utils.datetime_utils import utc_now
from utils.query_helpers import PageInfo, filter_by_patients, paginate

logger = logging.getLogger(__name__)


class PatientMonitoringService:
    """Service class for patient status and health data."""

    @staticmethod
    def record_status(db: Session, patient_id: int, recorded_by_user_id: int, values: Dict[str, Any]) -> PatientStatus:
        entry = PatientStatus(
            patient_id=patient_id,
            recorded_by_user_id=recorded_by_user_id,
            **values,
        )
        db.add(entry)
        db.commit()
        db.refresh(entry)
        logger.info(f"Recorded status {entry.status} for patient {patient_id}")
        return entry

    @staticmethod
    def latest_status(db: Session, patient_id: int) -> Optional[PatientStatus]:
        return db.query(PatientStatus).filter(
            PatientStatus.patient_id == patient_id
        ).order_by(PatientStatus.created_at.desc(), PatientStatus.id.desc()).first()

    @staticmethod
    def status_history(db: Session, patient_id: int, page: int = 1, limit: int = 10) -> Tuple[List[PatientStatus], PageInfo]:
        query = db.query(PatientStatus).filter(PatientStatus.patient_id == patient_id)
        return paginate(query.order_by(PatientStatus.created_at.desc(), PatientStatus.id.desc()), page, limit)

    @staticmethod
    def record_health_data(db: Session, user_id: int, values: Dict[str, Any]) -> HealthData:
        if not values.get("measured_at"):
            values = {**values, "measured_at": utc_now()}
        entry = HealthData(user_id=user_id, **values)
        db.add(entry)
        db.commit()
        db.refresh(entry)
        return entry

    @staticmethod
    def latest_health_data(db: Session, user_id: int) -> Optional[HealthData]:
        return db.query(HealthData).filter(
            HealthData.user_id == user_id
        ).order_by(HealthData.measured_at.desc(), HealthData.id.desc()).first()

    @staticmethod
    def health_data_history(db: Session, user_id: int, page: int = 1, limit: int = 10) -> Tuple[List[HealthData], PageInfo]:
        query = db.query(HealthData).filter(HealthData.user_id == user_id)
        return paginate(query.order_by(HealthData.measured_at.desc(), HealthData.id.desc()), page, limit)

    @staticmethod
    def patients_with_latest_status(db: Session, patient_ids: Optional[Sequence[int]]) -> List[Tuple[User, Optional[PatientStatus]]]:
        """Each visible patient paired with their most recent status (or None)."""
        patients = filter_by_patients(
            db.query(User).filter(User.role == ROLE_PATIENT), User.id, patient_ids
        ).order_by(User.last_name, User.first_name).all()
        if not patients:
            return []

        latest_ids = db.query(func.max(PatientStatus.id)).filter(
            PatientStatus.patient_id.in_([p.id for p in patients])
        ).group_by(PatientStatus.patient_id).all()
        latest = {
            entry.patient_id: entry
            for entry in db.query(PatientStatus).filter(PatientStatus.id.in_([row[0] for row in latest_ids])).all()
        }
        return [(patient, latest.get(patient.id)) for patient in patients]

    @staticmethod
    def patients_with_latest_health_data(db: Session, patient_ids: Optional[Sequence[int]]) -> List[Tuple[User, Optional[HealthData]]]:
        """Each visible patient paired with their most recent health data reading (or None)."""
        patients = filter_by_patients(
            db.query(User).filter(User.role == ROLE_PATIENT), User.id, patient_ids
        ).order_by(User.last_name, User.first_name).all()
        return [(patient, PatientMonitoringService.latest_health_data(db, patient.id)) for patient in patients]
