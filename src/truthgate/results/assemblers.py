"""Turn scored candidates into findings and collapse duplicates."""

import logging
from typing import List, Optional, Sequence, Tuple

from truthgate.config.settings import ConfidencePolicy
from truthgate.domain.models import (
    CandidateFinding,
    DeterminismVerdict,
    EvidencePackage,
    Expectation,
    Finding,
    Observation,
)
from truthgate.guardrails.engine import GuardrailsEngine
from truthgate.scoring.confidence import ConfidenceEngine, apply_truth_locks, round_score

from .identity import DEFAULT_ID_LENGTH, compute_finding_id

logger = logging.getLogger(__name__)

def candidate_id(candidate: CandidateFinding, length: int = DEFAULT_ID_LENGTH) -> str:
    source = candidate.source
    return compute_finding_id(
        source.file, source.line, source.column,
        candidate.promise.get("kind"), candidate.promise.get("value"),
        length=length,
    )


class FindingAssembler:
    """
    Scores a candidate, applies truth locks then guardrails, and stamps its id.

    The persisted confidence is the detector's value capped by the truth
    locks on its incoming status, then adjusted by guardrails. The unified
    engine result rides along as ``confidence_report``.
    """

    def __init__(
        self,
        confidence_engine: Optional[ConfidenceEngine] = None,
        guardrails_engine: Optional[GuardrailsEngine] = None,
        id_length: int = DEFAULT_ID_LENGTH,
    ):
        self.confidence_engine = confidence_engine or ConfidenceEngine()
        self.guardrails_engine = guardrails_engine or GuardrailsEngine()
        self.id_length = id_length

    @property
    def confidence_policy(self) -> ConfidencePolicy:
        return self.confidence_engine.policy

    def assemble(
        self,
        candidate: CandidateFinding,
        observation: Optional[Observation] = None,
        expectation: Optional[Expectation] = None,
        determinism_verdict: DeterminismVerdict = DeterminismVerdict.DETERMINISTIC,
        evidence_package: Optional[EvidencePackage] = None,
    ) -> Finding:
        if evidence_package is None:
            files = observation.evidence_files if observation is not None else ()
            evidence_package = EvidencePackage.from_files(files)

        report = self.confidence_engine.score_candidate(
            candidate, observation, expectation, determinism_verdict, evidence_package)
        capped, locks = apply_truth_locks(
            candidate.confidence, candidate.status, determinism_verdict,
            evidence_package.is_complete, self.confidence_policy,
        )
        guard = self.guardrails_engine.apply_to_candidate(candidate, evidence_package, confidence=capped)

        # guardrail deltas are added after the caps; clamp once more
        confidence, final_locks = apply_truth_locks(
            guard.final_confidence, guard.final_status, determinism_verdict,
            evidence_package.is_complete, self.confidence_policy,
        )
        locks += [code for code in final_locks if code not in locks]
        guardrails = guard.as_dict()
        if locks:
            guardrails["truthLocks"] = [code.value for code in locks]

        return Finding.from_candidate(
            candidate,
            candidate_id(candidate, self.id_length),
            confidence=round_score(confidence),
            status=guard.final_status,
            confidence_report=report.as_dict(),
            guardrails=guardrails,
        )


def deduplicate_findings(findings: Sequence[Finding]) -> Tuple[List[Finding], List[str]]:
    """First occurrence of each id wins; order is preserved. Returns (unique, collapsed ids)."""
    seen = set()
    unique = []
    collapsed = []
    for finding in findings:
        if finding.id in seen:
            collapsed.append(finding.id)
            continue
        seen.add(finding.id)
        unique.append(finding)
    if collapsed:
        logger.debug("[dedup] collapsed %d duplicate(s): %s", len(collapsed), ", ".join(collapsed))
    return unique, collapsed
