"""
This module provides a factory for creating and configuring the application's core components.
"""

from collection_schedule.config import STATE_DB_PATH
from collection_schedule.orchestrator import RunOrchestrator
from collection_schedule.services.email_service import GmailEmailService
from collection_schedule.services.form_navigator import FormNavigator
from collection_schedule.services.notification_gate import NotificationGate
from collection_schedule.services.persistence_service import PersistenceService
from collection_schedule.services.schedule_extractor import ScheduleExtractor
from collection_schedule.services.schedule_service import ScheduleService
from collection_schedule.services.secret_provider import SecretsFileProvider

from .logging_config import setup_logging


def initialize_app(db_path: str = STATE_DB_PATH) -> None:
    """
    Initializes the application by setting up the database and logging.
    """
    with PersistenceService(db_path) as persistence_service:
        persistence_service.init_db()
    setup_logging(db_path)


def create_email_service() -> GmailEmailService:
    return GmailEmailService(secret_provider=SecretsFileProvider())


def create_orchestrator(timezone: str, db_path: str = STATE_DB_PATH) -> RunOrchestrator:
    """
    Initializes and returns the RunOrchestrator with all its dependencies.
    """
    schedule_service = ScheduleService(
        navigator=FormNavigator(),
        extractor=ScheduleExtractor(zone=timezone),
    )
    notification_gate = NotificationGate(PersistenceService(db_path))
    return RunOrchestrator(
        schedule_service=schedule_service,
        notification_gate=notification_gate,
        email_service=create_email_service(),
    )
