"""Event template routes."""
from uuid import UUID

from fastapi import APIRouter, Depends

from app.core.repository import EventStore, get_store, get_user_id
from app.schemas import CreateResponse, EventRead, TemplateRead
from app.series.materialize import materialize_template

router = APIRouter(prefix="/event-templates", tags=["templates"])


@router.get("", response_model=list[TemplateRead])
async def list_templates(
    store: EventStore = Depends(get_store),
    user_id: int = Depends(get_user_id),
):
    """List the user's stored templates, newest first."""
    table = store.templates.table
    templates = store.templates.find_many(
        table.c.user_id == user_id, order_by=table.c.created_at.desc()
    )
    return [TemplateRead.model_validate(t) for t in templates]


@router.post("/{template_id}/materialize", response_model=CreateResponse, status_code=201)
async def materialize(
    template_id: UUID,
    store: EventStore = Depends(get_store),
    user_id: int = Depends(get_user_id),
):
    """
    Create one event per module stored in the template payload.

    Returns 400 INVALID_TEMPLATE when the template has no module list.
    """
    result = materialize_template(store, template_id, user_id=user_id)
    return CreateResponse(
        events=[EventRead.model_validate(e) for e in result.events],
        template=TemplateRead.model_validate(result.template),
    )
