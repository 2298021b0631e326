"""
Админка публикаций: список и тестовая публикация по всем каналам.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from apps.api_gateway.deps import http_error, service_auth_dep, session_factory_dep
from volunteer_manager.common.errors import AppError
from volunteer_manager.common.security import AuthContext
from volunteer_manager.common.time import to_iso
from volunteer_manager.domain.enums import SubscriptionType
from volunteer_manager.storage.db import SessionFactory
from volunteer_manager.storage.repositories import PublicationRepository
from volunteer_manager.subscriptions.publish import publish

router = APIRouter(prefix="/admin/publications")


class PublicationItem(BaseModel):
    id: int
    source_user_id: int | None = None
    subscription_type: SubscriptionType
    subscription_type_id: int | None = None
    created_at: str


class PublicationListResponse(BaseModel):
    publications: list[PublicationItem]


class PublicationTestRequest(BaseModel):
    message: str = Field(min_length=1, max_length=1000)
    source_user_id: int | None = None


class PublicationCreatedResponse(BaseModel):
    publication_id: int


@router.get("", response_model=PublicationListResponse)
def list_publications(
    limit: int = Query(default=50, ge=1, le=500),
    session_factory: SessionFactory = Depends(session_factory_dep),
    _: AuthContext = Depends(service_auth_dep),
) -> PublicationListResponse:
    with session_factory() as session:
        rows = PublicationRepository(session).list_recent(limit=limit)
        items = [
            PublicationItem(
                id=p.id,
                source_user_id=p.source_user_id,
                subscription_type=p.subscription_type,
                subscription_type_id=p.subscription_type_id,
                created_at=to_iso(p.created_at),
            )
            for p in rows
        ]
    return PublicationListResponse(publications=items)


@router.post(
    "/test",
    response_model=PublicationCreatedResponse,
    status_code=status.HTTP_201_CREATED,
)
def publish_test(
    req: PublicationTestRequest,
    session_factory: SessionFactory = Depends(session_factory_dep),
    _: AuthContext = Depends(service_auth_dep),
) -> PublicationCreatedResponse:
    try:
        publication_id = publish(
            SubscriptionType.Test,
            {"message": req.message},
            source_user_id=req.source_user_id,
            session_factory=session_factory,
        )
    except AppError as e:
        raise http_error(e) from e
    return PublicationCreatedResponse(publication_id=publication_id)
