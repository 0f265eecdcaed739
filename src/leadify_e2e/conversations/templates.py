"""
Scripted lead conversations and BANT fixtures.

Each lead category has four conversation templates. Hot leads state budget,
authority, need and a short timeline; cold leads avoid all four;
non-responsive leads barely answer; handoff leads ask for things only a
human agent can handle.
"""

from enum import Enum
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class LeadCategory(Enum):
    """Lead categories exercised by the simulator."""
    HOT = "hot"
    WARM = "warm"
    COLD = "cold"
    NON_RESPONSIVE = "non_responsive"
    HANDOFF = "handoff"


@dataclass(frozen=True)
class ConversationTemplate:
    category: LeadCategory
    messages: Tuple[str, ...]

    def __len__(self):
        return len(self.messages)


def _templates(category: LeadCategory, *conversations: List[str]) -> List[ConversationTemplate]:
    return [ConversationTemplate(category, tuple(messages)) for messages in conversations]


CONVERSATION_TEMPLATES: Dict[LeadCategory, List[ConversationTemplate]] = {
    LeadCategory.HOT: _templates(
        LeadCategory.HOT,
        [
            "Hi, I'm looking to buy a home in the next month",
            "My budget is around $500,000-$600,000",
            "I'm pre-approved for a mortgage and ready to make an offer",
            "I need a 4 bedroom house with a good school district",
            "Can you show me available properties this weekend?",
        ],
        [
            "Hello, we need to relocate for work by next month",
            "We can spend up to $750,000",
            "My spouse and I are both on the deed",
            "Looking for a modern home with home office space",
            "We're flying in this Friday to view properties",
        ],
        [
            "I'm a cash buyer looking to close quickly",
            "Budget is $1.2 million",
            "I make all property decisions for my family",
            "Need a luxury home with pool and smart home features",
            "Want to close within 2 weeks if we find the right property",
        ],
        [
            "Our company needs new office space urgently",
            "We have a budget of $2 million to purchase",
            "I'm the CFO with full purchasing authority",
            "Need 10,000 sq ft with parking for 50 cars",
            "Our lease ends in 30 days, need to move fast",
        ],
    ),
    LeadCategory.WARM: _templates(
        LeadCategory.WARM,
        [
            "I'm interested in buying a home in the next few months",
            "Budget is probably around $400,000",
            "I'll need to discuss with my partner",
            "Looking for 3 bedrooms, preferably with a garage",
            "We're planning to start seriously looking next month",
        ],
        [
            "Thinking about upgrading from our current home",
            "We could go up to $550,000 with the sale of our current place",
            "Both my wife and I need to agree",
            "Want more space for our growing family",
            "Probably looking to move in 3-4 months",
        ],
        [
            "I'm exploring investment properties",
            "Have about $300,000 to invest",
            "I make investment decisions myself",
            "Looking for good rental income potential",
            "Planning to buy within the next quarter",
        ],
        [
            "We're considering buying our first home",
            "Can afford around $350,000 with our savings",
            "It's just me and my fiancée deciding",
            "Need something move-in ready near downtown",
            "Want to buy before our wedding in 5 months",
        ],
    ),
    LeadCategory.COLD: _templates(
        LeadCategory.COLD,
        [
            "Just browsing to see what's available",
            "Not sure about budget yet",
            "Haven't talked to anyone else about this",
            "Just curious about the market",
            "Maybe next year",
        ],
        [
            "Wondering about home prices in the area",
            "Don't know what we can afford",
            "Would need to convince my spouse first",
            "Just starting to think about it",
            "Probably not for a while",
        ],
        [
            "How much do homes cost here?",
            "Haven't looked into financing",
            "Just me looking for now",
            "Not sure what I want",
            "No specific timeline",
        ],
        [
            "What's the market like these days?",
            "Budget depends on a lot of factors",
            "Need to discuss with family",
            "Just getting information",
            "Maybe in a year or two",
        ],
    ),
    LeadCategory.NON_RESPONSIVE: _templates(
        LeadCategory.NON_RESPONSIVE,
        ["Hello", "...", "Not sure", "I'll think about it"],
        ["Hi there", "Okay", "Maybe", "Thanks"],
        ["Hey", "Hmm", "Don't know", "Bye"],
        ["Hi", "Not really", "No thanks", "Goodbye"],
    ),
    LeadCategory.HANDOFF: _templates(
        LeadCategory.HANDOFF,
        [
            "I have a legal question about property liens",
            "Can you explain the foreclosure process?",
            "What are the tax implications of selling?",
            "I need help with a boundary dispute",
            "Can you review this contract for me?",
        ],
        [
            "Is the agent available to speak directly?",
            "I prefer to talk to a human",
            "This is too complicated for a chatbot",
            "I need someone who can visit the property",
            "Can I schedule a phone call with an agent?",
        ],
        [
            "I have a very specific situation",
            "My case involves probate and inheritance",
            "Need advice on 1031 exchange",
            "Question about zoning regulations",
            "Complex financing structure I need to discuss",
        ],
        [
            "I'm an attorney representing a client",
            "This involves a corporate acquisition",
            "Need to discuss off-market opportunities",
            "Confidential matter requiring discretion",
            "Special circumstances that need human review",
        ],
    ),
}


# Messages sent by the live token audit, grouped into one conversation each,
# with the operations each message should log
TOKEN_AUDIT_SCENARIOS: Dict[str, List[Tuple[str, Tuple[str, ...]]]] = {
    'BANT qualification': [
        ("Hello, I'm looking for a property", ('intent_classification', 'chat_reply')),
        ("My budget is 50 million pesos", ('intent_classification', 'bant_extraction', 'chat_reply')),
        ("I am the decision maker for this purchase", ('intent_classification', 'bant_extraction', 'chat_reply')),
        ("I need it for investment purposes", ('intent_classification', 'bant_extraction', 'chat_reply')),
        ("I plan to buy within 6 months", ('intent_classification', 'bant_extraction', 'chat_reply')),
    ],
    'Property estimation': [
        ("Can you help me estimate property prices?", ('intent_classification',)),
        ("I want a house and lot", ('intent_classification', 'property_extraction')),
        ("Show me the 10-year payment plan", ('intent_classification', 'payment_extraction')),
    ],
    'Semantic search': [
        ("What amenities do your properties offer?", ('intent_classification', 'semantic_search')),
        ("Do you have properties in Quezon City?", ('intent_classification', 'semantic_search')),
        ("Tell me about your company", ('intent_classification', 'semantic_search')),
    ],
    'Contact details': [
        ("My name is Alex Chen, phone 09175551234",
         ('intent_classification', 'contact_extraction', 'bant_normalization')),
        ("Contact me at test@email.com", ('intent_classification', 'contact_extraction')),
    ],
    'Edge inputs': [
        ("asdf", ('intent_classification',)),
        ("123456789", ('intent_classification',)),
        ("HELP", ('intent_classification',)),
    ],
}


def token_audit_messages() -> List[Tuple[str, Tuple[str, ...]]]:
    """Every audit message in send order, across all scenarios."""
    return [item for messages in TOKEN_AUDIT_SCENARIOS.values() for item in messages]

HIGH_BUDGET_MESSAGE = (
    "I'm looking for a property. My budget is $22 million and I need to make "
    "a decision within the next month."
)

HANDOFF_OPENING_MESSAGE = "Hi, I'd like to know more about your listings"
HANDOFF_FOLLOWUP_MESSAGE = "Is anyone from the team there?"


class BantConfig(BaseModel):
    """Custom BANT scoring configuration for an agent."""

    model_config = ConfigDict(extra='allow')

    budget_weight: int = 35
    authority_weight: int = 20
    need_weight: int = 15
    timeline_weight: int = 20
    contact_weight: int = 10
    budget_criteria: List[Dict[str, Any]] = Field(default_factory=list)
    authority_criteria: List[Dict[str, Any]] = Field(default_factory=list)
    need_criteria: List[Dict[str, Any]] = Field(default_factory=list)
    timeline_criteria: List[Dict[str, Any]] = Field(default_factory=list)
    contact_criteria: List[Dict[str, Any]] = Field(default_factory=list)
    priority_threshold: int = 85
    hot_threshold: int = 70
    warm_threshold: int = 50
    bant_scoring_prompt: Optional[str] = None

    @property
    def weights(self) -> Dict[str, int]:
        return {
            'budget': self.budget_weight,
            'authority': self.authority_weight,
            'need': self.need_weight,
            'timeline': self.timeline_weight,
            'contact': self.contact_weight,
        }

    @property
    def weights_total(self) -> int:
        return sum(self.weights.values())

    @property
    def weights_valid(self) -> bool:
        return self.weights_total == 100

    def to_payload(self) -> Dict[str, Any]:
        """Request body for the config endpoint; the generated prompt is server-side only."""
        return self.model_dump(exclude={'bant_scoring_prompt'})


CUSTOM_BANT_CONFIG = BantConfig(
    budget_criteria=[
        {'min': 25000000, 'max': None, 'points': 35, 'label': '>$25M'},
        {'min': 20000000, 'max': 25000000, 'points': 30, 'label': '$20-25M'},
        {'min': 15000000, 'max': 20000000, 'points': 25, 'label': '$15-20M'},
        {'min': 10000000, 'max': 15000000, 'points': 20, 'label': '$10-15M'},
        {'min': 5000000, 'max': 10000000, 'points': 15, 'label': '$5-10M'},
        {'min': 0, 'max': 5000000, 'points': 10, 'label': '<$5M'},
    ],
    authority_criteria=[
        {'type': 'sole_owner', 'points': 20, 'label': 'Sole Owner'},
        {'type': 'partner', 'points': 15, 'label': 'Business Partner'},
        {'type': 'family', 'points': 10, 'label': 'Family Decision'},
        {'type': 'advisor', 'points': 8, 'label': 'Financial Advisor'},
        {'type': 'committee', 'points': 5, 'label': 'Committee/Board'},
    ],
    need_criteria=[
        {'type': 'immediate', 'points': 15, 'label': 'Immediate Need'},
        {'type': 'residence', 'points': 12, 'label': 'Primary Residence'},
        {'type': 'investment', 'points': 10, 'label': 'Investment Property'},
        {'type': 'resale', 'points': 8, 'label': 'Resale/Flip'},
        {'type': 'other', 'points': 5, 'label': 'Other Purpose'},
    ],
    timeline_criteria=[
        {'type': 'immediate', 'points': 20, 'label': 'Immediate'},
        {'type': 'within_1_month', 'points': 18, 'label': 'Within 1 Month'},
        {'type': '1_3_months', 'points': 15, 'label': '1-3 Months'},
        {'type': '3_6_months', 'points': 10, 'label': '3-6 Months'},
        {'type': '6_12_months', 'points': 5, 'label': '6-12 Months'},
        {'type': 'over_1_year', 'points': 2, 'label': 'Over 1 Year'},
    ],
    contact_criteria=[
        {'type': 'full_contact', 'points': 10, 'label': 'Name + Phone + Email'},
        {'type': 'partial_contact', 'points': 5, 'label': 'Name + Phone or Email'},
        {'type': 'name_only', 'points': 3, 'label': 'Name Only'},
        {'type': 'no_contact', 'points': 0, 'label': 'No Contact Info'},
    ],
)


def invalid_bant_payload(config: BantConfig = CUSTOM_BANT_CONFIG) -> Dict[str, Any]:
    """Payload whose weights total 115; the backend must reject it with 400."""
    payload = config.to_payload()
    payload['budget_weight'] = 50
    return payload
