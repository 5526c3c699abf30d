"""
Message-safety rules: pattern tiers, stop words, consent gate and responder guardrails

Everything in this module is pure; side effects (queueing, auditing, fan
updates) belong to the services that call it.
"""
import re
from dataclasses import dataclass

from src.config import settings
from src.models.entities import Fan, Severity
from src.models.internal import ModerationAction, ModerationResult


@dataclass(frozen=True)
class PatternRule:
    """Named predicate over message text"""

    name: str
    pattern: re.Pattern[str]

    def matches(self, text: str) -> bool:
        return self.pattern.search(text) is not None


@dataclass(frozen=True)
class RuleTier:
    """Group of rules sharing one verdict; the tier, not the rule, decides the action"""

    name: str
    action: ModerationAction
    severity: Severity
    confidence: float
    rules: tuple[PatternRule, ...]


@dataclass(frozen=True)
class RuleMatch:
    """First rule that matched, and its tier"""

    tier: RuleTier
    rule: PatternRule

    @property
    def flag_reason(self) -> str:
        return f"{self.tier.name}:{self.rule.name}"


def _rule(name: str, pattern: str) -> PatternRule:
    return PatternRule(name=name, pattern=re.compile(pattern, re.IGNORECASE))


ESCALATION_TIER = RuleTier(
    name="escalation_pattern",
    action=ModerationAction.ESCALATE,
    severity=Severity.CRITICAL,
    confidence=0.95,
    rules=(
        _rule("minor_reference", r"\b(?:minor|under.*18|underage)\b"),
        _rule("violence_threat", r"\b(?:kill|suicide|harm|violence)\b"),
        _rule("doxxing_or_stalking", r"\b(?:personal|real|actual|home)\b.*\b(?:address|location|meet)\b"),
    ),
)

BLOCK_TIER = RuleTier(
    name="banned_pattern",
    action=ModerationAction.BLOCK,
    severity=Severity.HIGH,
    confidence=0.9,
    rules=(
        _rule("profanity", r"\b(?:fuck|shit|damn|bitch)\b"),
        _rule("meetup_solicitation", r"\b(?:meet|meetup|hotel|address|phone)\b"),
        _rule("age_reference", r"\b(?:under|kid|minor|teen|child)\b.*\b(?:18|years|age)\b"),
        _rule("self_harm_or_violence", r"\b(?:suicide|kill|death|harm)\b"),
        _rule("illegal_substance", r"\b(?:drug|cocaine|heroin|meth)\b"),
    ),
)

REVIEW_TIER = RuleTier(
    name="suspicious_pattern",
    action=ModerationAction.REVIEW,
    severity=Severity.MEDIUM,
    confidence=0.7,
    rules=(
        _rule("age_play", r"\b(?:daddy|baby|little)\b"),
        _rule("non_consent", r"\b(?:rape|force|non-consent)\b"),
        _rule("free_content_demand", r"\b(?:send|show|pics|nude)\b.*\b(?:free|no|without)\b"),
        _rule("off_platform_payment", r"\$\d+.*\b(?:cash|paypal|venmo)\b"),
    ),
)

# Descending severity; the first tier with a matching rule wins
RULE_TIERS: tuple[RuleTier, ...] = (ESCALATION_TIER, BLOCK_TIER, REVIEW_TIER)

SHORT_MESSAGE_CONFIDENCE = 0.8
DEFAULT_ALLOW_CONFIDENCE = 0.95

STOP_WORDS: tuple[str, ...] = ("stop", "unsubscribe", "no", "quit", "end", "block")

STOP_ALL_MESSAGES = "stop_all_messages"


def find_first_match(text: str) -> RuleMatch | None:
    """Evaluate tiers in order and return the first matching rule, if any"""
    for tier in RULE_TIERS:
        for rule in tier.rules:
            if rule.matches(text):
                return RuleMatch(tier=tier, rule=rule)
    return None


def classify_match(text: str, min_length: int | None = None) -> tuple[ModerationResult, RuleMatch | None]:
    """Classify text and also return the rule responsible for a non-allow verdict"""
    threshold = settings.moderation_min_length if min_length is None else min_length

    if len(text.strip()) < threshold:
        return ModerationResult(
            action=ModerationAction.ALLOW,
            severity=Severity.LOW,
            confidence=SHORT_MESSAGE_CONFIDENCE,
        ), None

    match = find_first_match(text)
    if match is None:
        return ModerationResult(
            action=ModerationAction.ALLOW,
            severity=Severity.LOW,
            confidence=DEFAULT_ALLOW_CONFIDENCE,
        ), None

    return ModerationResult(
        action=match.tier.action,
        reason=match.rule.name,
        severity=match.tier.severity,
        confidence=match.tier.confidence,
    ), match


def classify_text(text: str, min_length: int | None = None) -> ModerationResult:
    """Map message text to a moderation verdict"""
    result, _ = classify_match(text, min_length)
    return result


def is_stop_request(text: str) -> bool:
    """True when a stop word appears as the whole message or as a space-delimited token"""
    normalized = text.lower().strip()
    if not normalized:
        return False
    tokens = normalized.split(" ")
    return any(word in tokens for word in STOP_WORDS)


def is_consented(fan: Fan) -> bool:
    """True iff the fan affirmed both age and romantic-content consent at a recorded time"""
    consent = fan.consent_status
    if consent is None:
        return False
    return consent.age_affirmed and consent.romantic_content and consent.affirmed_at is not None


def is_opted_out(fan: Fan) -> bool:
    """True once the fan has asked to stop all messages"""
    return STOP_ALL_MESSAGES in fan.boundaries or bool(fan.preferences.get("opted_out"))


PERSONA_GUARDRAILS = """

**SAFETY RULES (ALWAYS APPLY):**
- Be flirty but keep it PG-13, never explicit.
- Never reference ages, minors, or anything that could involve someone under 18.
- Never promise, arrange, or hint at in-person meetings.
- Never ask for or share real names, addresses, phone numbers, or locations.
- Never request payment outside the platform.
- Respect every boundary the fan has set.
- If asked for something unsafe, politely decline and steer the conversation back to your persona.
"""
