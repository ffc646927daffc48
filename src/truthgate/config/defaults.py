"""Embedded default policy documents, used whenever no policy file is given."""

POLICY_VERSION = 1

DEFAULT_CONFIDENCE_POLICY = {
    "version": POLICY_VERSION,
    "weights": {
        "promiseStrength": 0.25,
        "observationStrength": 0.20,
        "correlationQuality": 0.20,
        "guardrails": 0.20,
        "evidenceCompleteness": 0.15,
    },
    "baseScores": {
        # promise strength
        "promiseProven": 1.0,
        "promiseObserved": 0.7,
        "promiseWeak": 0.4,
        "promiseUnknown": 0.1,
        # observation strength
        "urlChanged": 0.3,
        "domChanged": 0.2,
        "uiFeedbackConfirmed": 0.3,
        "consoleErrors": 0.2,
        "networkFailure": 0.3,
        "networkSuccess": 0.1,
        # correlation quality
        "correlationBase": 0.5,
        "timingAligned": 0.1,
        "routeMatched": 0.15,
        "requestMatched": 0.15,
        "traceLinked": 0.1,
        # internal guardrails
        "analyticsPenalty": 0.2,
        "shallowRoutingPenalty": 0.3,
        "networkSuccessNoUiPenalty": 0.2,
        "uiFeedbackContradictionPenalty": 0.4,
        # evidence completeness
        "screenshots": 0.3,
        "traces": 0.2,
        "signals": 0.25,
        "snippets": 0.25,
    },
    "thresholds": {
        "high": 0.85,
        "medium": 0.60,
        "weakCorrelation": 0.6,
        "contradiction": 0.6,
        "contradictionPenaltyBelow": 0.5,
        "incompleteEvidence": 0.5,
        "uiFeedbackConfirmed": 0.5,
    },
    "truthLocks": {
        "nonDeterministicMaxConfidence": 0.6,
        "evidenceIncompleteMaxConfidence": 0.6,
        "contradictionPenalty": 0.2,
        "evidenceCompleteRequired": True,
    },
    "missingSensorPenalty": 0.25,
}

DEFAULT_GUARDRAILS_POLICY = {
    "version": POLICY_VERSION,
    "resolution": "sequential",
    "rules": [
        {
            "id": "GUARD-001",
            "code": "GUARD_NETWORK_SUCCESS_NO_UI",
            "appliesTo": ["silent_failure", "network"],
            "evaluation": {"type": "network_success_no_ui"},
            "action": "DOWNGRADE",
            "confidenceDelta": -0.15,
            "category": "contradiction",
            "message": "Network request succeeded but no UI change was observed",
        },
        {
            "id": "GUARD-002",
            "code": "GUARD_ANALYTICS_ONLY",
            "appliesTo": ["*"],
            "evaluation": {"type": "analytics_only"},
            "action": "INFO",
            "confidenceDelta": -0.3,
            "category": "noise",
            "message": "Only analytics or beacon traffic observed; not a user promise",
        },
        {
            "id": "GUARD-003",
            "code": "GUARD_SHALLOW_ROUTING",
            "appliesTo": ["navigation", "route"],
            "evaluation": {"type": "shallow_routing"},
            "action": "DOWNGRADE",
            "confidenceDelta": -0.2,
            "category": "contradiction",
            "message": "Hash-only or shallow routing cannot confirm real navigation",
        },
        {
            "id": "GUARD-004",
            "code": "GUARD_UI_FEEDBACK_PRESENT",
            "appliesTo": ["silent_failure", "silent_submission"],
            "evaluation": {"type": "ui_feedback_present"},
            "action": "DOWNGRADE",
            "confidenceDelta": -0.2,
            "category": "contradiction",
            "message": "Visible UI feedback contradicts a silent-failure claim",
        },
        {
            "id": "GUARD-005",
            "code": "GUARD_INTERACTION_BLOCKED",
            "appliesTo": ["silent_failure"],
            "evaluation": {"type": "interaction_blocked"},
            "action": "INFO",
            "confidenceDelta": -0.1,
            "category": "expected_behavior",
            "message": "Control was disabled or blocked; no effect is expected",
        },
        {
            "id": "GUARD-006",
            "code": "GUARD_VALIDATION_PRESENT",
            "appliesTo": ["validation", "form", "submission"],
            "evaluation": {"type": "validation_present"},
            "action": "DOWNGRADE",
            "confidenceDelta": -0.1,
            "category": "contradiction",
            "message": "Validation feedback was shown to the user",
        },
        {
            "id": "GUARD-007",
            "code": "GUARD_EVIDENCE_INCOMPLETE",
            "appliesTo": ["*"],
            "evaluation": {"type": "contradict_evidence"},
            "action": "BLOCK",
            "confidenceDelta": -0.2,
            "category": "evidence",
            "message": "Evidence package is incomplete; CONFIRMED is not allowed",
        },
    ],
}
