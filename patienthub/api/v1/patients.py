from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session
from typing import List

from ...core.database import get_db
from ...api.deps import get_osteopath_user, get_local_storage_dep
from ...models import Osteopath
from ...schemas.patient import PatientCreate, PatientUpdate, PatientResponse
from ...services.export_service import export_patients_csv
from ...services.pdf_export import export_patient_record_pdf, export_patients_pdf
from ...services.practice_service import AppointmentService, InvoiceService, PatientService
from ...storage.local import LocalStorage

router = APIRouter(prefix="/patients", tags=["Patients"])


def get_patient_service(
    osteopath: Osteopath = Depends(get_osteopath_user),
    db: Session = Depends(get_db),
    local_storage: LocalStorage = Depends(get_local_storage_dep)
) -> PatientService:
    return PatientService(db, local_storage, osteopath.id)


@router.get("", response_model=List[PatientResponse])
async def list_patients(
    refresh: bool = False,
    service: PatientService = Depends(get_patient_service)
):
    """List the current osteopath's patients."""
    return await service.list(force_refresh=refresh)


@router.get("/export.csv")
async def export_patients(service: PatientService = Depends(get_patient_service)):
    content = export_patients_csv(await service.list())
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": 'attachment; filename="patients.csv"'}
    )


@router.get("/export.pdf")
async def export_patients_as_pdf(service: PatientService = Depends(get_patient_service)):
    return Response(
        content=export_patients_pdf(await service.list()),
        media_type="application/pdf",
        headers={"Content-Disposition": 'attachment; filename="patients.pdf"'}
    )


@router.get("/{patient_id}/export.pdf")
async def export_patient_record(
    patient_id: int,
    osteopath: Osteopath = Depends(get_osteopath_user),
    db: Session = Depends(get_db),
    local_storage: LocalStorage = Depends(get_local_storage_dep),
    service: PatientService = Depends(get_patient_service)
):
    """The patient's record with appointment and billing history."""
    patient = await service.get(patient_id)
    appointments = await AppointmentService(db, local_storage, osteopath.id).list()
    invoices = await InvoiceService(db, local_storage, osteopath.id).list()
    content = export_patient_record_pdf(
        patient,
        [a for a in appointments if a.get("patient_id") == patient_id],
        [i for i in invoices if i.get("patient_id") == patient_id],
    )
    return Response(
        content=content,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="patient-{patient_id}.pdf"'}
    )


@router.get("/{patient_id}", response_model=PatientResponse)
async def get_patient(patient_id: int, service: PatientService = Depends(get_patient_service)):
    return await service.get(patient_id)


@router.post("", response_model=PatientResponse, status_code=status.HTTP_201_CREATED)
async def create_patient(
    patient_data: PatientCreate,
    service: PatientService = Depends(get_patient_service)
):
    return await service.create(patient_data.model_dump())


@router.patch("/{patient_id}", response_model=PatientResponse)
async def update_patient(
    patient_id: int,
    patient_data: PatientUpdate,
    service: PatientService = Depends(get_patient_service)
):
    return await service.update(patient_id, patient_data.model_dump(exclude_unset=True))


@router.delete("/{patient_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_patient(patient_id: int, service: PatientService = Depends(get_patient_service)):
    await service.delete(patient_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
