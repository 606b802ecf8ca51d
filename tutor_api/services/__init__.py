"""
Service layer for the Tutor Chat Gateway.

This module orchestrates chat requests, conversation history and usage reports.
"""

from tutor_api.services.conversation_service import ConversationService
from tutor_api.services.monitoring_service import MonitoringService
from tutor_api.services.router_service import RouterService

__all__ = ["RouterService", "ConversationService", "MonitoringService"]
