from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from fastapi.responses import Response

from stockscan.core.session import get_scan_session
from stockscan.schemas.schemas import CountResult, MappingCreate, MappingOut, MappingReplace
from stockscan.services.scan_session import ScanSession

router = APIRouter(prefix="/api/mappings", tags=["mappings"])


@router.get("", response_model=list[MappingOut])
async def list_mappings(scan_session: ScanSession = Depends(get_scan_session)):
    return scan_session.mapping_store.all_mappings()


@router.post("", response_model=MappingOut)
async def add_mapping(
    body: MappingCreate,
    scan_session: ScanSession = Depends(get_scan_session),
):
    gtin, ref = body.gtin.strip(), body.ref.strip()
    scan_session.mapping_store.add_mapping(gtin, ref)
    return MappingOut(gtin=gtin, ref=ref)


@router.put("", response_model=list[MappingOut])
async def replace_mappings(
    body: MappingReplace,
    scan_session: ScanSession = Depends(get_scan_session),
):
    store = scan_session.mapping_store
    store.set_mappings([(m.gtin.strip(), m.ref.strip()) for m in body.mappings])
    return store.all_mappings()


@router.post("/import", response_model=CountResult)
async def import_mappings(
    file: UploadFile = File(...),
    scan_session: ScanSession = Depends(get_scan_session),
):
    try:
        text = (await file.read()).decode("utf-8-sig")
    except UnicodeDecodeError:
        raise HTTPException(status_code=400, detail="Mapping file must be UTF-8")
    return CountResult(count=scan_session.mapping_store.import_csv(text))


@router.get("/export")
async def export_mappings(scan_session: ScanSession = Depends(get_scan_session)):
    return Response(
        content=scan_session.mapping_store.export_csv(),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="gtin-ref-mapping.csv"'},
    )
