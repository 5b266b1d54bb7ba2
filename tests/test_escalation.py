"""Tests for escalation classification (rule store path and built-in fallback)."""

from safechat.domain.services.escalation import EscalationClassifier, analyze_fallback, resolve_matches
from safechat.domain.verdicts import EscalationKeywordHit, EscalationMatches


def test_no_keywords_no_escalation(store):
    res = EscalationClassifier(store).analyze("How do I change my delivery address?")
    assert not res.should_escalate
    assert res.type is None
    assert res.urgency == "normal"


def test_crisis_wins_over_lower_priorities(store):
    res = EscalationClassifier(store).analyze("I'm furious and I want to die, I'll call a lawyer")
    assert res.should_escalate
    assert res.type == "crisis"
    assert res.reason == "CRISIS_DETECTED"
    assert res.urgency == "critical"
    assert set(res.triggers) == {"crisis_keyword", "legal_keyword", "sentiment_keyword"}


def test_legal_is_high_urgency(store):
    res = EscalationClassifier(store).analyze("My attorney will contact you")
    assert res.type == "legal"
    assert res.reason == "LEGAL_CONCERN"
    assert res.urgency == "high"


def test_negative_sentiment_scenario(store):
    res = EscalationClassifier(store).analyze("I'm furious, this is the worst service, absolutely terrible")
    assert res.type == "sentiment"
    assert res.reason == "NEGATIVE_SENTIMENT"
    assert res.urgency == "medium"
    assert res.triggers == ["sentiment_keyword"]


def test_unknown_category_uses_generic_config():
    matches = EscalationMatches(matched=True, matches=[EscalationKeywordHit(category="billing", keyword="invoice")])
    res = resolve_matches(matches)
    assert res.type == "billing"
    assert res.reason == "ESCALATION_TRIGGERED"
    assert res.urgency == "medium"


def test_unknown_category_outranks_sentiment_but_not_complaint():
    hits = [
        EscalationKeywordHit(category="sentiment", keyword="angry"),
        EscalationKeywordHit(category="billing", keyword="invoice"),
    ]
    assert resolve_matches(EscalationMatches(matched=True, matches=hits)).type == "billing"

    hits.append(EscalationKeywordHit(category="complaint", keyword="complaint"))
    assert resolve_matches(EscalationMatches(matched=True, matches=hits)).type == "complaint"


def test_store_down_uses_fallback_detection(store, backing):
    backing.fail = True
    res = EscalationClassifier(store).analyze("I need to speak to a manager right now")
    assert res.type == "complaint"
    assert res.degraded


def test_fallback_crisis_short_circuits():
    res = analyze_fallback("I want to end my life, I'm going to sue you")
    assert res.type == "crisis"
    assert res.urgency == "critical"
    assert res.triggers == ["crisis_keyword"]


def test_fallback_single_negative_term_does_not_escalate():
    res = analyze_fallback("This is terrible")
    assert not res.should_escalate
    assert res.triggers == ["sentiment_keyword"]


def test_fallback_two_negative_terms_escalate():
    res = analyze_fallback("This is terrible and I am angry")
    assert res.should_escalate
    assert res.type == "sentiment"


def test_fallback_repeated_term_counts_once():
    assert not analyze_fallback("terrible, terrible, terrible").should_escalate


def test_fallback_refund_is_recorded_without_escalating():
    res = analyze_fallback("I would like a refund please")
    assert not res.should_escalate
    assert res.triggers == ["refund_keyword"]


def test_fallback_legal_beats_complaint():
    res = analyze_fallback("This is unacceptable, my lawyer will hear about it")
    assert res.type == "legal"
    assert res.triggers == ["legal_keyword", "complaint_keyword"]


def test_crisis_response_has_resources_and_no_handoff(store):
    classifier = EscalationClassifier(store)
    response = classifier.response(classifier.analyze("I want to end my life"))
    assert response["resources"]
    assert response["show_human_handoff"] is False


def test_admin_template_overrides_default_message(store, backing):
    for s in backing.escalation_sets:
        if s.category == "legal":
            s.response_template = "Our legal team will follow up ({{ urgency }})."
    classifier = EscalationClassifier(store)
    response = classifier.response(classifier.analyze("I will contact my lawyer"))
    assert response["message"] == "Our legal team will follow up (high)."
    assert response["show_human_handoff"] is True
    assert response["resources"] is None


def test_broken_template_keeps_default_message(store, backing):
    for s in backing.escalation_sets:
        if s.category == "complaint":
            s.response_template = "Hello {{ missing_value }}"
    classifier = EscalationClassifier(store)
    response = classifier.response(classifier.analyze("I want to file a complaint"))
    assert response["message"].startswith("I understand you'd like to speak with someone")
