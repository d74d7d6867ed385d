"""Dependency injection container for the application."""

from dependency_injector import containers, providers

from core.config import Settings
from core.database import Database
from services.messaging import MessageSender
from services.workflow import WorkflowService


class Container(containers.DeclarativeContainer):
    """Application dependency injection container."""

    # Settings
    settings = providers.Singleton(
        Settings,
    )

    # Database
    database = providers.Singleton(
        Database,
        settings=settings
    )

    # Outbound messaging (shared httpx client)
    message_sender = providers.Singleton(
        MessageSender,
        settings=settings,
        database=database
    )

    # Services
    workflow_service = providers.Singleton(
        WorkflowService,
        database=database,
        sender=message_sender,
        settings=settings
    )


# Global container instance
container = Container()
