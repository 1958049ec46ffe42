"""
Template endpoints - read-only view of the registered templates.
"""

from fastapi import APIRouter, HTTPException, Request, status

from app.schemas.responses import TemplateFieldResponse, TemplateResponse
from app.services.template_store import Template, TemplateNotFoundError, TemplateStore

router = APIRouter(prefix="/templates")


def get_template_store(request: Request) -> TemplateStore:
    store = getattr(request.app.state, "template_store", None)
    if store is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Template store not initialized. Service not ready.",
        )
    return store


def _to_response(template: Template, include_markup: bool) -> TemplateResponse:
    return TemplateResponse(
        id=template.id,
        name=template.name,
        width=template.width,
        height=template.height,
        fields=[
            TemplateFieldResponse(name=f.name, type=f.type, label=f.label, default=f.default)
            for f in template.fields
        ],
        html=template.html if include_markup else None,
        css=template.css if include_markup else None,
    )


@router.get("", response_model=list[TemplateResponse])
async def list_templates(request: Request):
    """List registered templates (without markup)."""
    store = get_template_store(request)
    return [_to_response(t, include_markup=False) for t in store.templates()]


@router.get("/{ref}", response_model=TemplateResponse)
async def get_template(ref: str, request: Request):
    """Get one template by id or name, including its markup."""
    store = get_template_store(request)
    try:
        template = store.get(ref)
    except TemplateNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    return _to_response(template, include_markup=True)
