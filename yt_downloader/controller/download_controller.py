from pathlib import Path
from typing import Optional
from urllib.parse import urlencode

from fastapi import Form, APIRouter, Request, Query, HTTPException
from fastapi.responses import JSONResponse, RedirectResponse
from fastapi.templating import Jinja2Templates

from yt_downloader.schemas import DownloadDetail, StatusCheckResponse, MessageResponse
from yt_downloader.service.download_service import DownloadService
from yt_downloader.service.errors import NotFoundError, ValidationError
from yt_downloader.utils.datetime_helper import format_datetime_utc, utcnow

router = APIRouter(tags=["Downloads"])
templates = Jinja2Templates(directory=str(Path(__file__).resolve().parent.parent / "templates"))

# Jinja2 필터 등록
templates.env.filters['to_iso'] = format_datetime_utc


def get_service(request: Request) -> DownloadService:
    return request.app.state.download_service


def validation_error_response(error: ValidationError) -> JSONResponse:
    return JSONResponse(status_code=422, content={"errors": error.to_dict()})


@router.get("/health-check", response_class=JSONResponse)
async def health_check():
    return {"status": "ok", "timestamp": format_datetime_utc(utcnow())}


@router.get("/")
async def home(request: Request, success: Optional[str] = None):
    downloads = await get_service(request).list_recent()
    return templates.TemplateResponse(request, "index.html", {
        "downloads": downloads,
        "success": success,
    })


@router.post("/downloads")
async def create_download(request: Request, url: str = Form(""), format: str = Form("")):
    try:
        download = await get_service(request).submit(url, format)
    except ValidationError as e:
        return validation_error_response(e)

    # 작업 목록 페이지로 리다이렉트
    query = urlencode({
        "success": "Download started successfully! Processing...",
        "download_id": download.id,
    })
    return RedirectResponse(url=f"/?{query}", status_code=303)


# /downloads/{download_id}보다 먼저 등록해야 함
@router.get("/downloads/status/check", response_model=StatusCheckResponse)
async def check_status(request: Request, ids: list[str] = Query(default=[])):
    snapshots = await get_service(request).check(ids)
    return {"downloads": snapshots}


@router.get("/downloads/{download_id}", response_model=DownloadDetail)
async def get_download(request: Request, download_id: int):
    try:
        download = await get_service(request).get(download_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Download not found.")
    return DownloadDetail.from_download(download)


@router.delete("/downloads/{download_id}", response_model=MessageResponse)
async def delete_download(request: Request, download_id: int):
    # 이미 삭제된 작업이어도 클라이언트 입장에서는 성공
    await get_service(request).delete(download_id)
    return {"message": "Download deleted successfully."}


@router.post("/downloads/{download_id}/retry", response_model=DownloadDetail, status_code=201)
async def retry_download(request: Request, download_id: int):
    try:
        download = await get_service(request).retry(download_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Download not found.")
    except ValidationError as e:
        return validation_error_response(e)
    return DownloadDetail.from_download(download)
