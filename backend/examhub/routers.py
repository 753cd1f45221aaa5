"""Resource routers.

Every resource exposes the same five operations, so `crud_router` builds
them from a service class and the resource's schemas:

- GET    /<resource>           list (filters, `page`, `per_page`)
- POST   /<resource>           create, 201
- GET    /<resource>/{id}      fetch, 404 when absent
- PUT    /<resource>/{id}      partial update (PATCH is accepted too)
- DELETE /<resource>/{id}      hard delete, 204 with an empty body

All routes require a bearer token. `users_router` adds the user-only
operations (related-record includes and status toggling).
"""

from typing import Dict, List, Optional, Sequence, Type

from fastapi import APIRouter, Depends, Query, Request, Response
from pydantic import BaseModel
from sqlmodel import Session

from . import errors, models, schemas, services
from .auth import get_current_user
from .database import get_session

MAX_PER_PAGE = 100
DEFAULT_PER_PAGE = 15
# (page - 1) * per_page must fit a database integer
MAX_PAGE = models.DB_INT_MAX // MAX_PER_PAGE


class ListParams:
    """Common list query parameters.

    `per_page` is clamped to [1, 100] and `page` to [1, MAX_PAGE]; without
    `page` the whole result set is returned.
    """
    def __init__(
        self,
        active: Optional[bool] = Query(default=None, description="filter on is_active"),
        page: Optional[int] = Query(default=None),
        per_page: int = Query(default=DEFAULT_PER_PAGE),
    ):
        self.active = active
        self.page = max(1, min(page, MAX_PAGE)) if page is not None else None
        self.per_page = max(1, min(per_page, MAX_PER_PAGE))


def _int_filters(request: Request, fields: Sequence[str]) -> Dict[str, Optional[int]]:
    """Read optional integer foreign-key filters from the query string."""
    out: Dict[str, Optional[int]] = {}
    problems: Dict[str, List[str]] = {}
    for field in fields:
        raw = request.query_params.get(field)
        if raw is None or raw == "":
            continue
        try:
            value = int(raw)
        except ValueError:
            problems[field] = [f"The {field.replace('_', ' ')} must be an integer."]
            continue
        if not models.DB_INT_MIN <= value <= models.DB_INT_MAX:
            problems[field] = [f"The {field.replace('_', ' ')} is out of range."]
            continue
        out[field] = value
    if problems:
        raise errors.ValidationError(problems)
    return out


def _run_list(service: services.EntityService, params: ListParams, filters: dict, response: Response):
    filters["is_active"] = params.active
    rows, total = service.list(filters, page=params.page, per_page=params.per_page)
    response.headers["X-Total-Count"] = str(total)
    return rows


def crud_router(
    prefix: str,
    service_cls: Type[services.EntityService],
    create_schema: Type[BaseModel],
    update_schema: Type[BaseModel],
    out_schema: Type[BaseModel],
    filter_fields: Sequence[str] = (),
    with_detail: bool = True,
) -> APIRouter:
    """Build the authenticated CRUD routes for one resource."""
    router = APIRouter(prefix=prefix, dependencies=[Depends(get_current_user)])

    @router.get("", response_model=List[out_schema])
    def list_items(
        request: Request,
        response: Response,
        params: ListParams = Depends(),
        db: Session = Depends(get_session),
    ):
        return _run_list(service_cls(db), params, _int_filters(request, filter_fields), response)

    @router.post("", response_model=out_schema, status_code=201)
    def create_item(payload: create_schema, db: Session = Depends(get_session)):
        return service_cls(db).create(payload)

    if with_detail:
        @router.get("/{item_id}", response_model=out_schema)
        def get_item(item_id: int, db: Session = Depends(get_session)):
            return service_cls(db).get(item_id)

    @router.api_route("/{item_id}", methods=["PUT", "PATCH"], response_model=out_schema)
    def update_item(item_id: int, payload: update_schema, db: Session = Depends(get_session)):
        return service_cls(db).update(item_id, payload)

    @router.delete("/{item_id}", status_code=204, response_class=Response)
    def delete_item(item_id: int, db: Session = Depends(get_session)):
        service_cls(db).delete(item_id)
        return Response(status_code=204)

    return router


USER_INCLUDES = ("role", "institute")


def user_detail(user: models.User, includes: Sequence[str] = ()) -> dict:
    """Serialize a user, attaching the requested related records."""
    out = schemas.UserOut.model_validate(user).model_dump(mode="json")
    if "role" in includes:
        out["role"] = schemas.RoleOut.model_validate(user.role).model_dump(mode="json") if user.role else None
    if "institute" in includes:
        out["institute"] = (
            schemas.InstituteOut.model_validate(user.institute).model_dump(mode="json") if user.institute else None
        )
    return out


def _parse_includes(include: Optional[str]) -> List[str]:
    if not include:
        return []
    names = [part.strip() for part in include.split(",") if part.strip()]
    unknown = [n for n in names if n not in USER_INCLUDES]
    if unknown:
        raise errors.ValidationError.single("include", f"Unknown relation(s): {', '.join(unknown)}.")
    return names


def users_router() -> APIRouter:
    router = crud_router(
        "/users",
        services.UserService,
        schemas.UserCreate,
        schemas.UserUpdate,
        schemas.UserOut,
        filter_fields=("role_id", "institute_id"),
        with_detail=False,
    )

    @router.get("/{item_id}")
    def get_user(item_id: int, include: Optional[str] = None, db: Session = Depends(get_session)):
        """Return one user; `include=role,institute` attaches related records."""
        includes = _parse_includes(include)
        return user_detail(services.UserService(db).get(item_id), includes)

    @router.patch("/{item_id}/toggle-status", response_model=schemas.UserOut)
    def toggle_status(item_id: int, db: Session = Depends(get_session)):
        """Flip the user's `is_active` flag."""
        return services.UserService(db).toggle_status(item_id)

    return router


def resource_routers() -> List[APIRouter]:
    return [
        users_router(),
        crud_router("/roles", services.RoleService, schemas.RoleCreate, schemas.RoleUpdate, schemas.RoleOut),
        crud_router(
            "/institutes",
            services.InstituteService,
            schemas.InstituteCreate,
            schemas.InstituteUpdate,
            schemas.InstituteOut,
        ),
        crud_router("/exams", services.ExamService, schemas.ExamCreate, schemas.ExamUpdate, schemas.ExamOut),
        crud_router(
            "/user-exams",
            services.UserExamService,
            schemas.UserExamCreate,
            schemas.UserExamUpdate,
            schemas.UserExamOut,
            filter_fields=("user_id", "exam_id"),
        ),
        crud_router(
            "/institute-exams",
            services.InstituteExamService,
            schemas.InstituteExamCreate,
            schemas.InstituteExamUpdate,
            schemas.InstituteExamOut,
            filter_fields=("institute_id", "exam_id"),
        ),
        crud_router(
            "/exam-results",
            services.ExamResultService,
            schemas.ExamResultCreate,
            schemas.ExamResultUpdate,
            schemas.ExamResultOut,
            filter_fields=("user_id", "exam_id"),
        ),
    ]
