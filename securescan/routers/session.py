from functools import partial

from fastapi import APIRouter, Depends, File, Request, UploadFile
from fastapi.responses import JSONResponse

from securescan.config import settings
from securescan.schemas import NavigateRequest, Screen, SessionState, URLRequest
from securescan.services.capture import open_camera
from securescan.services.qr_decoder import attempt_decode, decode_image_bytes
from securescan.session import ScanSession

router = APIRouter(prefix="/session", tags=["session"])


def get_session(request: Request) -> ScanSession:
    return request.app.state.session


def session_state(session: ScanSession) -> SessionState:
    state = session.state
    return SessionState(
        screen=state.screen,
        current_result=state.current_result,
        history=state.history,
        blocked_urls=state.blocked_urls,
        busy=session.busy,
        alert=session.alert,
        notice=session.notice,
        capture_error=session.capture_error.value if session.capture_error else None,
    )


@router.get("", response_model=SessionState)
async def get_state(session: ScanSession = Depends(get_session)):
    return session_state(session)


@router.post("/scan", response_model=SessionState)
async def scan(payload: URLRequest, session: ScanSession = Depends(get_session)):
    """
    Manual URL entry. Runs the full scan pipeline and answers with the new session state.
    """
    if not payload.url:
        return JSONResponse(status_code=400, content={"error": "URL is required"})
    if session.busy:
        return JSONResponse(status_code=409, content={"error": "A scan is already in progress"})

    await session.submit(payload.url)
    return session_state(session)


@router.post("/upload", response_model=SessionState)
async def upload(file: UploadFile = File(...), session: ScanSession = Depends(get_session)):
    """
    Accepts image upload (PNG/JPG), decodes the QR code and scans its URL.
    When no code is found the state only carries a notice.
    """
    if session.busy:
        return JSONResponse(status_code=409, content={"error": "A scan is already in progress"})

    image_bytes = await file.read()
    await session.scan_image(image_bytes, decode_image_bytes)
    return session_state(session)


@router.post("/camera", status_code=202, response_model=SessionState)
async def camera(session: ScanSession = Depends(get_session)):
    task = session.start_camera(partial(open_camera, settings.camera_index), attempt_decode)
    if task is None:
        return JSONResponse(status_code=409, content={"error": "A scan is already in progress"})
    return session_state(session)


@router.post("/navigate", response_model=SessionState)
async def navigate(payload: NavigateRequest, session: ScanSession = Depends(get_session)):
    if payload.screen is Screen.SCANNING:
        if not session.start_scan():
            return JSONResponse(status_code=409, content={"error": "A scan is already in progress"})
    else:
        session.navigate(payload.screen)
    return session_state(session)


@router.post("/cancel", response_model=SessionState)
async def cancel(session: ScanSession = Depends(get_session)):
    session.cancel()
    return session_state(session)


@router.post("/rescan", response_model=SessionState)
async def rescan(session: ScanSession = Depends(get_session)):
    if not session.rescan():
        return JSONResponse(status_code=409, content={"error": "A scan is already in progress"})
    return session_state(session)


@router.post("/back", response_model=SessionState)
async def back(session: ScanSession = Depends(get_session)):
    session.back()
    return session_state(session)


@router.post("/history/{result_id}", response_model=SessionState)
async def select_history_item(result_id: str, session: ScanSession = Depends(get_session)):
    if session.select(result_id) is None:
        return JSONResponse(status_code=404, content={"error": "Scan not found"})
    return session_state(session)


@router.post("/alert/dismiss", response_model=SessionState)
async def dismiss_alert(go_home: bool = False, session: ScanSession = Depends(get_session)):
    session.dismiss_alert(go_home=go_home)
    return session_state(session)
