"""Lead conversation templates, planning and replay."""

from .templates import (
    CONVERSATION_TEMPLATES,
    CUSTOM_BANT_CONFIG,
    TOKEN_AUDIT_SCENARIOS,
    BantConfig,
    ConversationTemplate,
    LeadCategory,
    token_audit_messages,
)
from .generator import (
    AsyncConversationSimulator,
    ConversationGenerator,
    ConversationSimulator,
    PlannedConversation,
    SimulationStats,
)
