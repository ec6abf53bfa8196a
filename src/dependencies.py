"""
Dependency injection for services

Provides FastAPI dependency providers. All relay state lives in the
ServiceContainer stored on ``app.state`` by the application lifespan.
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from src.config.settings import Settings
from src.services.message_service import MessageService
from src.services.service_container import ServiceContainer
from src.services.webhook_service import WebhookService
from src.utils.logger import get_logger

logger = get_logger(__name__)


def get_service_container(request: Request) -> ServiceContainer:
    """
    Get the application's service container

    Raises:
        HTTPException: If the application has not finished starting
    """
    container = getattr(request.app.state, "container", None)
    if container is None:
        logger.error("Service container requested before startup")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service is starting"
        )
    return container


def get_app_settings(
        container: Annotated[ServiceContainer, Depends(get_service_container)]
) -> Settings:
    """Get the settings the container was built with"""
    return container.settings


def get_webhook_service(
        container: Annotated[ServiceContainer, Depends(get_service_container)]
) -> WebhookService:
    """Get webhook service instance"""
    return container.webhook_service


def get_message_service(
        container: Annotated[ServiceContainer, Depends(get_service_container)]
) -> MessageService:
    """Get message service instance"""
    return container.message_service


# Type aliases for cleaner endpoint signatures
ContainerDep = Annotated[ServiceContainer, Depends(get_service_container)]
SettingsDep = Annotated[Settings, Depends(get_app_settings)]
WebhookServiceDep = Annotated[WebhookService, Depends(get_webhook_service)]
MessageServiceDep = Annotated[MessageService, Depends(get_message_service)]
