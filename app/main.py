import asyncio
from contextlib import asynccontextmanager
from http import HTTPStatus
from typing import Annotated, TypeVar

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import HTMLResponse, JSONResponse
from pydantic import BaseModel, ValidationError as PydanticValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.helpers.checklist import (
    checklist_item_create,
    checklist_item_delete,
    checklist_item_update,
)
from app.helpers.config import CONFIG
from app.helpers.errors import (
    NotFoundError,
    PlannerError,
    RelayError,
    ValidationError,
)
from app.helpers.http import aiohttp_session
from app.helpers.jinja import jinja
from app.helpers.logging import logger
from app.helpers.monitoring import SpanAttributeEnum, start_as_current_span
from app.helpers.reminder import reminder_send
from app.models.error import ErrorInnerModel, ErrorModel
from app.models.message import MessageModel
from app.models.readiness import ReadinessCheckModel, ReadinessEnum, ReadinessModel
from app.models.reminder import ReminderRequestModel, ReminderResultModel
from app.models.task import (
    ChecklistItemCreateModel,
    ChecklistItemModel,
    ChecklistItemUpdateModel,
    TaskCreateModel,
    TaskModel,
    TaskUpdateModel,
)
from app.persistence.imail import IMail
from app.persistence.memory import MemoryStore

_BodyT = TypeVar("_BodyT", bound=BaseModel)

# First log
logger.info(
    "briplanner v%s",
    CONFIG.version,
)


def _use_store(request: Request) -> MemoryStore:
    return request.app.state.store


def _use_mail(request: Request) -> IMail:
    return request.app.state.mail


StoreDep = Annotated[MemoryStore, Depends(_use_store)]
MailDep = Annotated[IMail, Depends(_use_mail)]

_router = APIRouter()


@_router.get("/health/liveness")
@start_as_current_span("health_liveness_get")
async def health_liveness_get() -> None:
    """
    Check if the service is running.

    No parameters are expected.

    Returns a 200 OK if the service is technically running.
    """
    return


@_router.get(
    "/health/readiness",
    status_code=HTTPStatus.OK,
)
@start_as_current_span("health_readiness_get")
async def health_readiness_get(store: StoreDep, mail: MailDep) -> JSONResponse:
    """
    Check if the service is ready to serve requests.

    No parameters are expected. Services tested are: store, mail.

    Returns a 200 OK if the service is ready to serve requests. If the service is not ready, it should return a 503 Service Unavailable.
    """
    # Check all components in parallel
    store_check, mail_check = await asyncio.gather(
        store.readiness(),
        mail.readiness(),
    )
    readiness = ReadinessModel(
        status=ReadinessEnum.OK,
        checks=[
            ReadinessCheckModel(id="mail", status=mail_check),
            ReadinessCheckModel(id="startup", status=ReadinessEnum.OK),
            ReadinessCheckModel(id="store", status=store_check),
        ],
    )
    # If one of the checks fails, the whole readiness fails
    status_code = HTTPStatus.OK
    for check in readiness.checks:
        if check.status != ReadinessEnum.OK:
            readiness.status = ReadinessEnum.FAIL
            status_code = HTTPStatus.SERVICE_UNAVAILABLE
            break
    return JSONResponse(
        content=readiness.model_dump(mode="json"),
        status_code=status_code,
    )


@_router.get(
    "/",
    response_class=HTMLResponse,
)
@start_as_current_span("board_get")
async def board_get(store: StoreDep) -> HTMLResponse:
    """
    Show all tasks with a web interface.

    No parameters are expected.

    Returns the task forest, with checklist progress, as an HTML page.
    """
    template = jinja.get_template("board.html.jinja")
    render = await template.render_async(
        tasks=store.task_list(),
        version=CONFIG.version,
    )
    return HTMLResponse(
        content=render,
        status_code=HTTPStatus.OK,
    )


@_router.get("/api/tasks")
@start_as_current_span("task_list_get")
async def task_list_get(store: StoreDep) -> list[TaskModel]:
    """
    REST API to list all tasks.

    No parameters are expected.

    Returns the top-level tasks, with their children nested, in JSON format.
    """
    return store.task_list()


@_router.get("/api/tasks/{task_id}")
@start_as_current_span("task_get")
async def task_get(task_id: str, store: StoreDep) -> TaskModel:
    """
    REST API to get a task, wherever it is in the forest.

    Returns a single task object `TaskModel`, in JSON format.
    """
    SpanAttributeEnum.TASK_ID.attribute(task_id)
    task = store.task_get(task_id)
    if not task:
        raise NotFoundError("Task not found")
    return task


@_router.post(
    "/api/tasks",
    status_code=HTTPStatus.CREATED,
)
@start_as_current_span("task_post")
async def task_post(request: Request, store: StoreDep) -> TaskModel:
    """
    REST API to create a task.

    Required body parameter is a JSON object `TaskCreateModel`. The task is nested under `parent_id` (or `parentId`) if set.

    Returns a single task object `TaskModel`, in JSON format.
    """
    body = await _parse_body(request, TaskCreateModel)
    return store.task_create(
        description=body.description,
        parent_id=body.parent_id,
        title=body.title,
    )


@_router.put("/api/tasks/{task_id}")
@start_as_current_span("task_put")
async def task_put(task_id: str, request: Request, store: StoreDep) -> TaskModel:
    """
    REST API to update a task.

    Body is a JSON object `TaskUpdateModel`, only the fields sent are updated.

    Returns a single task object `TaskModel`, in JSON format.
    """
    SpanAttributeEnum.TASK_ID.attribute(task_id)
    body = await _parse_body(request, TaskUpdateModel)
    return store.task_update(task_id, body)


@_router.delete("/api/tasks/{task_id}")
@start_as_current_span("task_delete")
async def task_delete(task_id: str, store: StoreDep) -> MessageModel:
    """
    REST API to delete a task and all its children.
    """
    SpanAttributeEnum.TASK_ID.attribute(task_id)
    if not store.task_delete(task_id):
        raise NotFoundError("Task not found")
    return MessageModel(message="Task deleted successfully")


@_router.post(
    "/api/tasks/{task_id}/checklist",
    status_code=HTTPStatus.CREATED,
)
@start_as_current_span("task_checklist_post")
async def task_checklist_post(
    task_id: str,
    request: Request,
    store: StoreDep,
) -> ChecklistItemModel:
    """
    REST API to add an item at the end of a task checklist.

    Required body parameter is a JSON object `ChecklistItemCreateModel`.

    Returns a single item object `ChecklistItemModel`, in JSON format.
    """
    SpanAttributeEnum.TASK_ID.attribute(task_id)
    body = await _parse_body(request, ChecklistItemCreateModel)
    return checklist_item_create(store, task_id, body.text)


@_router.put("/api/tasks/{task_id}/checklist/{item_id}")
@start_as_current_span("task_checklist_put")
async def task_checklist_put(
    task_id: str,
    item_id: str,
    request: Request,
    store: StoreDep,
) -> ChecklistItemModel:
    """
    REST API to update a checklist item.

    Body is a JSON object `ChecklistItemUpdateModel`, only the fields sent are updated.
    """
    SpanAttributeEnum.TASK_ID.attribute(task_id)
    SpanAttributeEnum.CHECKLIST_ITEM_ID.attribute(item_id)
    body = await _parse_body(request, ChecklistItemUpdateModel)
    return checklist_item_update(store, task_id, item_id, body)


@_router.delete("/api/tasks/{task_id}/checklist/{item_id}")
@start_as_current_span("task_checklist_delete")
async def task_checklist_delete(
    task_id: str,
    item_id: str,
    store: StoreDep,
) -> MessageModel:
    """
    REST API to remove a checklist item.
    """
    SpanAttributeEnum.TASK_ID.attribute(task_id)
    SpanAttributeEnum.CHECKLIST_ITEM_ID.attribute(item_id)
    checklist_item_delete(store, task_id, item_id)
    return MessageModel(message="Checklist item deleted successfully")


@_router.post("/api/tasks/{task_id}/email")
@start_as_current_span("reminder_post")
async def reminder_post(
    task_id: str,
    request: Request,
    store: StoreDep,
    mail: MailDep,
) -> ReminderResultModel:
    """
    REST API to send an email reminder for a task.

    Required body parameter is a JSON object `ReminderRequestModel`. Subject defaults to "Reminder: <title>".

    Returns the preview link of the message, if the relay provides one.
    """
    SpanAttributeEnum.TASK_ID.attribute(task_id)
    body = await _parse_body(request, ReminderRequestModel)
    receipt = await reminder_send(
        mail=mail,
        store=store,
        subject=body.subject,
        task_id=task_id,
        to=body.to,
    )
    return ReminderResultModel(
        message="Email sent successfully",
        preview_url=receipt.preview_url,
    )


async def planner_exception_handler(
    request: Request,  # noqa: ARG001
    exc: Exception,
) -> JSONResponse:
    """
    Translate task store, checklist and relay errors to HTTP responses.
    """
    assert isinstance(exc, PlannerError)
    if isinstance(exc, ValidationError):
        return _standard_error(
            message=exc.message,
            status_code=HTTPStatus.BAD_REQUEST,
        )
    if isinstance(exc, NotFoundError):
        return _standard_error(
            message=exc.message,
            status_code=HTTPStatus.NOT_FOUND,
        )
    if isinstance(exc, RelayError):
        # Already logged with its trace by the relay
        return _standard_error(
            details=exc.details,
            message=exc.message,
            status_code=HTTPStatus.INTERNAL_SERVER_ERROR,
        )
    logger.error("Unhandled planner error: %s", exc.message)
    return _standard_error(
        message=exc.message,
        status_code=HTTPStatus.INTERNAL_SERVER_ERROR,
    )


async def http_exception_handler(
    request: Request,  # noqa: ARG001
    exc: Exception,
) -> JSONResponse:
    """
    Handle HTTP exceptions and return the error in a standard format.
    """
    assert isinstance(exc, StarletteHTTPException)
    return _standard_error(
        message=str(exc.detail),
        status_code=exc.status_code,
    )


async def validation_exception_handler(
    request: Request,  # noqa: ARG001
    exc: Exception,
) -> JSONResponse:
    """
    Handle validation exceptions and return the error in a standard format.
    """
    assert isinstance(exc, RequestValidationError)
    return _standard_error(
        details=[str(x) for x in exc.errors()],  # Pydantic returns well formatted errors, use them
        message="Validation error",
        status_code=HTTPStatus.UNPROCESSABLE_ENTITY,
    )


async def _parse_body(request: Request, model: type[_BodyT]) -> _BodyT:
    """
    Validate the JSON body of a request against a model.

    An empty body is read as an empty object. Fields sent are tracked in `model_fields_set`.
    """
    raw = await request.body()
    try:
        return model.model_validate_json(raw or b"{}")
    except PydanticValidationError as e:
        raise RequestValidationError(e.errors()) from e


def _standard_error(
    message: str,
    status_code: int,
    details: list[str] | None = None,
) -> JSONResponse:
    """
    Generate a standard error response.
    """
    model = ErrorModel(
        error=ErrorInnerModel(
            details=details or [],
            message=message,
        )
    )
    return JSONResponse(
        content=model.model_dump(mode="json"),
        status_code=status_code,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):  # noqa: ARG001
    yield
    # Close HTTP session
    await (await aiohttp_session()).close()


def create_api(
    store: MemoryStore | None = None,
    mail: IMail | None = None,
) -> FastAPI:
    """
    Build the application around a task store and a mail relay.

    A new empty store is created if none is given. The relay defaults to the one from the configuration.
    """
    api = FastAPI(
        description="Plan tasks, nest them, break them into checklists and get reminded by email.",
        lifespan=lifespan,
        title="briplanner",
        version=CONFIG.version,
    )
    api.state.mail = mail or CONFIG.mail.instance
    api.state.store = store or MemoryStore()

    api.include_router(_router)
    api.add_exception_handler(PlannerError, planner_exception_handler)
    api.add_exception_handler(RequestValidationError, validation_exception_handler)
    api.add_exception_handler(StarletteHTTPException, http_exception_handler)
    return api


# FastAPI
api = create_api()
