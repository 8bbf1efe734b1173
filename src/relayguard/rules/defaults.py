"""Built-in rule table."""

from __future__ import annotations

from relayguard.models import ActionType
from relayguard.models import Severity
from relayguard.models import ZAP_RECEIPT_KIND
from relayguard.models import ZAP_REQUEST_KIND
from relayguard.rules.ruleset import ActionTemplate
from relayguard.rules.ruleset import compile_patterns
from relayguard.rules.ruleset import ComplianceRule
from relayguard.rules.ruleset import ContentFilterRule
from relayguard.rules.ruleset import Rule
from relayguard.rules.ruleset import SpamHeuristicRule

DAY = 86_400

_PROMOTIONAL = (
    r"\b(buy now|click here|free money|guaranteed)\b",
    r"\b(bitcoin|crypto)\b.*\b(investment|profit|guarantee)\b",
)

# ---------------------------------------------------------------------------
# Content filters
# ---------------------------------------------------------------------------

HATE_SPEECH = ContentFilterRule(
    id="hate_speech",
    patterns=compile_patterns(
        r"\b(hate|racist|nazi|terrorist)\b",
        r"\b(kill|murder|violence)\b.*\b(group|people|race)\b",
    ),
    severity=Severity.CRITICAL,
    description="Hate speech",
    actions=(
        ActionTemplate(ActionType.BLOCK, duration=30 * DAY),
        ActionTemplate(ActionType.REPORT),
    ),
)

SPAM_KEYWORDS = ContentFilterRule(
    id="spam_keywords",
    violation_type="spam",
    patterns=compile_patterns(*_PROMOTIONAL),
    severity=Severity.MEDIUM,
    description="Spam keywords",
    actions=(ActionTemplate(ActionType.SHADOW_BAN, duration=7 * DAY),),
)

INAPPROPRIATE_CONTENT = ContentFilterRule(
    id="inappropriate_content",
    violation_type="inappropriate",
    patterns=compile_patterns(
        r"\b(nude|naked|porn|explicit)\b",
        r"\b(drug|cocaine|heroin|marijuana)\b.*\b(sell|buy|deal)\b",
    ),
    severity=Severity.HIGH,
    description="Inappropriate content",
    actions=(ActionTemplate(ActionType.CONTENT_DELETE, reason="Inappropriate content"),),
)

HARASSMENT = ContentFilterRule(
    id="harassment",
    patterns=compile_patterns(
        r"\b(stupid|idiot|moron)\b.*\b(you are|you're)\b",
        r"\b(you are|you're)\b.*\b(stupid|idiot|moron)\b",
        r"\b(kill.*yourself|go die)\b",
    ),
    severity=Severity.HIGH,
    description="Harassment",
    actions=(ActionTemplate(ActionType.BLOCK, duration=14 * DAY),),
)

EXCESSIVE_LINKS = ContentFilterRule(
    id="excessive_links",
    violation_type="spam",
    patterns=compile_patterns(r"https?://\S+"),
    severity=Severity.LOW,
    description="Links",
)

# ---------------------------------------------------------------------------
# Spam heuristics
# ---------------------------------------------------------------------------

PROMOTIONAL_PHRASES = SpamHeuristicRule(
    id="promotional_phrases",
    patterns=compile_patterns(*_PROMOTIONAL),
    severity=Severity.MEDIUM,
    description="Promotional spam phrases",
)

# ---------------------------------------------------------------------------
# Compliance
# ---------------------------------------------------------------------------

_HIDE = ActionTemplate(ActionType.CONTENT_HIDE)

GDPR = ComplianceRule(
    id="gdpr",
    patterns=compile_patterns(
        r"\b\d{4}[-\s]?\d{4}[-\s]?\d{4}[-\s]?\d{4}\b",  # card number
        r"\b\d{3}[-\s]?\d{2}[-\s]?\d{4}\b",  # SSN
        r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b",  # email
        flags=0,
    ),
    severity=Severity.HIGH,
    description="Potential personal data detected in content",
    requirement="GDPR compliance",
    actions=(_HIDE,),
)

KYC_AML = ComplianceRule(
    id="kyc_aml",
    patterns=compile_patterns(r"\b\d{4,}\b", flags=0),
    severity=Severity.CRITICAL,
    description="Large financial transaction detected - KYC verification required",
    requirement="KYC/AML compliance",
    kinds=frozenset({ZAP_REQUEST_KIND, ZAP_RECEIPT_KIND}),
    actions=(_HIDE, ActionTemplate(ActionType.REPORT)),
)

AGE_VERIFICATION = ComplianceRule(
    id="age_verification",
    patterns=compile_patterns(
        r"\b(alcohol|beer|wine|whiskey)\b",
        r"\b(gambling|bet|casino)\b",
        r"\b(tobacco|smoking|cigarette)\b",
    ),
    severity=Severity.MEDIUM,
    description="Age-restricted content detected - age verification required",
    requirement="Age verification compliance",
    actions=(_HIDE,),
)

DEFAULT_RULES: tuple[Rule, ...] = (
    HATE_SPEECH,
    SPAM_KEYWORDS,
    INAPPROPRIATE_CONTENT,
    HARASSMENT,
    EXCESSIVE_LINKS,
    PROMOTIONAL_PHRASES,
    GDPR,
    KYC_AML,
    AGE_VERIFICATION,
)
