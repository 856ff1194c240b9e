"""FastAPI application entrypoint and HTTP controllers.

Controllers are intentionally thin: every route except login and the
health check first verifies the bearer token, then evaluates exactly one
gate, then delegates to a service.

Endpoints implemented:
- POST /user/login
- POST /user/register
- POST /user/delete
- POST /user/changePassword
- GET /user/{user_id}
- POST /module/create
- GET /module/{module_id}
- POST /module/{module_id}/assignTeacher
- POST /module/{module_id}/item
- POST /grades/module/{module_id}/insert
- GET /grades/module/{module_id}
- POST /grades/module/{module_id}/delete
- GET /grades/student/{student_id}
- GET /health
"""

import json
import logging
import time
import uuid
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import PlainTextResponse, Response
from sqlmodel import Session

from . import permissions, services
from .auth import get_current_session, get_token_service, require
from .config import settings
from .database import create_db_and_tables, engine, get_session
from .errors import InvalidToken, NotFoundError, PermissionDenied, PersistError
from .permissions import RequestContext, authorize
from .schemas import (
    AssignTeacherIn, ChangePasswordIn, DeleteUserIn, GradeDeleteIn, GradeIn, LoginIn,
    ModuleIn, ModuleItemIn, ModuleItemOut, ModuleOut, ProfileOut, RegisterIn, TokenOut, UserSession,
)
from .tokens import TokenService
from .utils.rate_limit import SlidingWindowLimiter

app = FastAPI(title="Noodle Learning Management API")
logger = logging.getLogger("noodle.api")
if not logger.handlers:
    logging.basicConfig(level=settings.LOG_LEVEL)
login_limiter = SlidingWindowLimiter(settings.LOGIN_RATE_LIMIT, settings.LOGIN_RATE_WINDOW_SECONDS)

LOGIN_FAILED = "Wrong username or password"


def bootstrap():
    """Create tables and, when configured, the initial administrator."""
    create_db_and_tables()
    if settings.SEED_ADMINISTRATOR:
        with Session(engine) as db:
            services.AuthService(db).ensure_administrator(settings.ADMIN_USERNAME, settings.ADMIN_PASSWORD)


bootstrap()


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    req_id = request.headers.get("X-Request-ID", uuid.uuid4().hex)
    request.state.request_id = req_id
    started = time.perf_counter()
    info = {
        "request_id": req_id,
        "path": request.url.path,
        "method": request.method,
        "client": request.client.host if request.client else "unknown",
    }
    try:
        response = await call_next(request)
    except Exception:
        info["duration_ms"] = round((time.perf_counter() - started) * 1000.0, 2)
        logger.exception("request_failed %s", json.dumps(info, ensure_ascii=True))
        raise
    response.headers["X-Request-ID"] = req_id
    info["status_code"] = response.status_code
    info["duration_ms"] = round((time.perf_counter() - started) * 1000.0, 2)
    logger.info("request_done %s", json.dumps(info, ensure_ascii=True))
    return response


@app.exception_handler(InvalidToken)
async def invalid_token_handler(request: Request, exc: InvalidToken):
    logger.warning("rejected token on %s: %s", request.url.path, exc)
    return PlainTextResponse("Invalid JWT", status_code=401)


@app.exception_handler(PermissionDenied)
async def permission_denied_handler(request: Request, exc: PermissionDenied):
    return Response(status_code=403)


def _enforce_login_rate_limit(request: Request) -> None:
    key = request.client.host if request.client else "unknown"
    allowed, retry_after = login_limiter.hit(key)
    if not allowed:
        raise HTTPException(
            status_code=429,
            detail=f"rate limit exceeded; retry after {retry_after}s",
            headers={"Retry-After": str(retry_after)},
        )


def _check_body_module(module_id: int, body_module_id: Optional[int]) -> None:
    """The route parameter is authoritative; a differing body value is rejected."""
    if body_module_id is not None and body_module_id != module_id:
        raise HTTPException(status_code=400, detail="moduleId does not match route")


def _module_out(module) -> ModuleOut:
    return ModuleOut(
        id=module.id,
        name=module.name,
        description=module.description,
        course_id=module.course_id,
        teacher_ids=sorted(t.id for t in module.assigned_teachers),
    )


@app.post('/user/login', response_model=TokenOut, dependencies=[Depends(_enforce_login_rate_limit)])
def login(payload: LoginIn, db: Session = Depends(get_session),
          tokens: TokenService = Depends(get_token_service)):
    """Authenticate a user and return a JWT valid for twelve hours."""
    token = services.AuthService(db).authenticate(payload.username, payload.password, tokens)
    if not token:
        return PlainTextResponse(LOGIN_FAILED, status_code=403)
    return {'access_token': token}


@app.post('/user/register')
def register(payload: RegisterIn, db: Session = Depends(get_session),
             _session: UserSession = Depends(require(permissions.ADMINISTRATOR_ONLY))):
    """Register an account and its profile; nothing is stored on failure."""
    try:
        user = services.AuthService(db).register(payload)
    except PersistError:
        return PlainTextResponse("The user could not be registered", status_code=403)
    return {'id': user.id, 'username': user.username}


@app.post('/user/delete')
def delete_user(payload: DeleteUserIn, db: Session = Depends(get_session),
                session: UserSession = Depends(get_current_session)):
    authorize(permissions.ADMINISTRATOR_OR_OWN_USERNAME, session, RequestContext(username=payload.username))
    try:
        services.AuthService(db).delete_account(payload.username)
    except (NotFoundError, PersistError):
        return PlainTextResponse("The user could not be deleted", status_code=500)
    return PlainTextResponse("The user has been deleted")


@app.post('/user/changePassword')
def change_password(payload: ChangePasswordIn, db: Session = Depends(get_session),
                    session: UserSession = Depends(get_current_session)):
    authorize(permissions.ADMINISTRATOR_OR_OWN_USERNAME, session, RequestContext(username=payload.username))
    try:
        services.AuthService(db).change_password(payload.username, payload.password)
    except (NotFoundError, PersistError):
        return PlainTextResponse("Password could not be changed.", status_code=500)
    return PlainTextResponse("The password has been changed.")


@app.get('/user/{user_id}', response_model=ProfileOut)
def get_profile(user_id: int, db: Session = Depends(get_session),
                _session: UserSession = Depends(require(permissions.ADMINISTRATOR_OR_OWN_ID))):
    try:
        user, detail = services.AuthService(db).profile(user_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail='User not found')
    return ProfileOut(
        id=user.id,
        username=user.username,
        role=user.role,
        fullname=detail.fullname,
        address=detail.address,
        matriculation_number=detail.matriculation_number,
        mail=detail.mail,
        course_id=user.course_id,
    )


@app.post('/module/create', response_model=ModuleOut)
def create_module(payload: ModuleIn, db: Session = Depends(get_session),
                  _session: UserSession = Depends(require(permissions.ADMINISTRATOR_ONLY))):
    svc = services.ModuleService(db)
    try:
        module = svc.create(payload.name, payload.description, payload.assigned_teacher,
                            payload.assigned_course, payload.senior_module)
    except NotFoundError:
        raise HTTPException(status_code=404, detail='Teacher not found')
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except PersistError:
        return PlainTextResponse("The module could not be saved", status_code=500)
    return _module_out(svc.get(module.id))


@app.get('/module/{module_id}', response_model=ModuleOut)
def get_module(module_id: int, db: Session = Depends(get_session),
               _session: UserSession = Depends(get_current_session)):
    try:
        return _module_out(services.ModuleService(db).get(module_id))
    except NotFoundError:
        raise HTTPException(status_code=404, detail='Module not found')


@app.post('/module/{module_id}/assignTeacher', response_model=ModuleOut)
def assign_teacher(module_id: int, payload: AssignTeacherIn, db: Session = Depends(get_session),
                   _session: UserSession = Depends(require(permissions.ADMINISTRATOR_ONLY))):
    try:
        module = services.ModuleService(db).assign_teacher(module_id, payload.teacher_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail='Module or teacher not found')
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except PersistError:
        return PlainTextResponse("The teacher could not be assigned", status_code=500)
    return _module_out(module)


@app.post('/module/{module_id}/item', response_model=ModuleItemOut)
def create_module_item(module_id: int, payload: ModuleItemIn, db: Session = Depends(get_session),
                       session: UserSession = Depends(require(permissions.ADMINISTRATOR_OR_MODULE_TEACHER))):
    """Add an item to a module; a supplied file is stored together with it."""
    _check_body_module(module_id, payload.module_id)
    f = payload.downloadable_file
    try:
        item = services.ModuleService(db).add_item(
            module_id, session.id, payload.content, payload.web_link, payload.is_visible,
            payload.has_file_upload, f.name if f else None, f.path if f else None,
        )
    except (NotFoundError, PersistError):
        return PlainTextResponse("The item could not be saved", status_code=500)
    return ModuleItemOut.model_validate(item, from_attributes=True)


@app.post('/grades/module/{module_id}/insert')
def insert_grade(module_id: int, payload: GradeIn, db: Session = Depends(get_session),
                 _session: UserSession = Depends(require(permissions.ADMINISTRATOR_OR_MODULE_TEACHER))):
    _check_body_module(module_id, payload.module_id)
    try:
        services.GradeService(db).upsert(module_id, payload.student_id, payload.grade, payload.weight)
    except PersistError:
        return PlainTextResponse("The grade has not been saved", status_code=500)
    return PlainTextResponse("The grade has been saved")


@app.get('/grades/module/{module_id}')
def grades_for_module(module_id: int, db: Session = Depends(get_session),
                      _session: UserSession = Depends(require(permissions.ADMINISTRATOR_OR_MODULE_TEACHER))):
    try:
        return services.GradeService(db).for_module(module_id)
    except NotFoundError:
        return PlainTextResponse("The grades could not be retrieved", status_code=500)


@app.post('/grades/module/{module_id}/delete')
def delete_grade(module_id: int, payload: GradeDeleteIn, db: Session = Depends(get_session),
                 _session: UserSession = Depends(require(permissions.ADMINISTRATOR_OR_MODULE_TEACHER))):
    _check_body_module(module_id, payload.module_id)
    try:
        services.GradeService(db).delete(module_id, payload.student_id)
    except (NotFoundError, PersistError):
        return PlainTextResponse("The grade could not be deleted", status_code=500)
    return PlainTextResponse("The grade has been deleted")


@app.get('/grades/student/{student_id}')
def grades_for_student(student_id: int, db: Session = Depends(get_session),
                       _session: UserSession = Depends(require(permissions.ADMINISTRATOR_OR_OWN_ID))):
    try:
        return services.GradeService(db).for_student(student_id)
    except NotFoundError:
        return PlainTextResponse("The grades could not be retrieved", status_code=500)


@app.get("/health")
def health():
    return {"status": "ok"}
