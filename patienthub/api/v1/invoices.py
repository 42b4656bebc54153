from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session
from typing import List

from ...core.database import get_db
from ...api.deps import get_osteopath_user, get_local_storage_dep
from ...models import Osteopath
from ...schemas.invoice import InvoiceCreate, InvoiceUpdate, InvoiceResponse
from ...services.export_service import export_invoices_csv
from ...services.pdf_export import export_invoices_pdf
from ...services.practice_service import InvoiceService, PatientService, patients_by_id
from ...storage.local import LocalStorage

router = APIRouter(prefix="/invoices", tags=["Invoices"])


def get_invoice_service(
    osteopath: Osteopath = Depends(get_osteopath_user),
    db: Session = Depends(get_db),
    local_storage: LocalStorage = Depends(get_local_storage_dep)
) -> InvoiceService:
    return InvoiceService(db, local_storage, osteopath.id)


@router.get("", response_model=List[InvoiceResponse])
async def list_invoices(service: InvoiceService = Depends(get_invoice_service)):
    return await service.list()


@router.get("/export.csv")
async def export_invoices(
    osteopath: Osteopath = Depends(get_osteopath_user),
    db: Session = Depends(get_db),
    local_storage: LocalStorage = Depends(get_local_storage_dep),
    service: InvoiceService = Depends(get_invoice_service)
):
    patients = await PatientService(db, local_storage, osteopath.id).list()
    content = export_invoices_csv(await service.list(), patients_by_id(patients))
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": 'attachment; filename="invoices.csv"'}
    )


@router.get("/export.pdf")
async def export_invoices_as_pdf(
    osteopath: Osteopath = Depends(get_osteopath_user),
    db: Session = Depends(get_db),
    local_storage: LocalStorage = Depends(get_local_storage_dep),
    service: InvoiceService = Depends(get_invoice_service)
):
    patients = await PatientService(db, local_storage, osteopath.id).list()
    return Response(
        content=export_invoices_pdf(await service.list(), patients_by_id(patients)),
        media_type="application/pdf",
        headers={"Content-Disposition": 'attachment; filename="invoices.pdf"'}
    )


@router.get("/{invoice_id}", response_model=InvoiceResponse)
async def get_invoice(invoice_id: int, service: InvoiceService = Depends(get_invoice_service)):
    return await service.get(invoice_id)


@router.post("", response_model=InvoiceResponse, status_code=status.HTTP_201_CREATED)
async def create_invoice(
    invoice_data: InvoiceCreate,
    service: InvoiceService = Depends(get_invoice_service)
):
    return await service.create(invoice_data.model_dump())


@router.patch("/{invoice_id}", response_model=InvoiceResponse)
async def update_invoice(
    invoice_id: int,
    invoice_data: InvoiceUpdate,
    service: InvoiceService = Depends(get_invoice_service)
):
    return await service.update(invoice_id, invoice_data.model_dump(exclude_unset=True))


@router.delete("/{invoice_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_invoice(invoice_id: int, service: InvoiceService = Depends(get_invoice_service)):
    await service.delete(invoice_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
