"""Learn per-domain corrections from human edits and replay the confident ones."""
from __future__ import annotations

import dataclasses
import json
import threading
import uuid
from collections import Counter
from pathlib import Path
from typing import Any, Mapping, Union

from job_extract.cleaning import domain_of
from job_extract.config import LEARNING_PATH
from job_extract.log import get_logger
from job_extract.models import (
    RECORD_FIELDS,
    DomainInsight,
    ExtractedJobRecord,
    LearnedPattern,
    UserFeedback,
)

log = get_logger(__name__)

INITIAL_CONFIDENCE = 0.5
CONFIDENCE_STEP = 0.1
APPLY_THRESHOLD = 0.7
TOP_CORRECTIONS = 5

FieldSource = Union[ExtractedJobRecord, Mapping[str, Any], None]


def as_fields(data: FieldSource) -> dict[str, str]:
    """Reviewable fields of a record or form dict as stripped strings."""
    if data is None:
        return {}
    if isinstance(data, ExtractedJobRecord):
        return data.fields()
    return {
        k: str(v).strip()
        for k, v in data.items()
        if k in RECORD_FIELDS and v is not None and str(v).strip()
    }


class FeedbackLearningStore:
    """Feedback log, learned patterns and derived per-domain insights.

    Every public method takes the store lock; one instance may be shared by
    concurrent extractions.
    """

    def __init__(self) -> None:
        self._feedback: list[UserFeedback] = []
        self._patterns: list[LearnedPattern] = []
        self._insights: dict[str, DomainInsight] = {}
        self._lock = threading.RLock()

    # ── Recording ──

    def record_feedback(
        self,
        url: str,
        original: FieldSource,
        corrected: FieldSource,
        strategy: str = "unknown",
    ) -> UserFeedback:
        feedback = UserFeedback(
            id=uuid.uuid4().hex[:9],
            url=url,
            domain=domain_of(url),
            original=as_fields(original),
            corrected=as_fields(corrected),
            strategy=strategy,
        )
        with self._lock:
            self._feedback.append(feedback)
            for name, corrected_value in feedback.corrected.items():
                original_value = feedback.original.get(name, "")
                if original_value and corrected_value and original_value != corrected_value:
                    self._upsert_pattern(feedback.domain, name, original_value, corrected_value)
            self._insights[feedback.domain] = self._build_insight(feedback.domain)
        log.info(
            "Recorded feedback for %s (%d field(s) corrected)",
            feedback.domain,
            sum(1 for k, v in feedback.corrected.items() if feedback.original.get(k, v) != v),
        )
        return feedback

    def _upsert_pattern(self, domain: str, name: str, original: str, corrected: str) -> None:
        for pattern in self._patterns:
            if pattern.domain == domain and pattern.field == name and pattern.original_pattern == original:
                pattern.corrected_pattern = corrected
                pattern.confidence = round(min(pattern.confidence + CONFIDENCE_STEP, 1.0), 2)
                pattern.usage_count += 1
                return
        self._patterns.append(
            LearnedPattern(
                domain=domain,
                field=name,
                original_pattern=original,
                corrected_pattern=corrected,
                confidence=INITIAL_CONFIDENCE,
            )
        )

    def _build_insight(self, domain: str) -> DomainInsight:
        """Recomputed from the whole feedback log for *domain*."""
        entries = [f for f in self._feedback if f.domain == domain]
        insight = DomainInsight(domain=domain)
        names = list(dict.fromkeys(k for f in entries for k in f.corrected))
        for name in names:
            counts: Counter[str] = Counter()
            seen = accurate = 0
            for f in entries:
                if name not in f.corrected:
                    continue
                seen += 1
                before, after = f.original.get(name, ""), f.corrected[name]
                if before == after:
                    accurate += 1
                elif before:
                    counts[f"{before} -> {after}"] += 1
                    insight.suggested_patterns.append(f"Avoid: {before} -> Use: {after}")
            if counts:
                insight.common_corrections[name] = [c for c, _ in counts.most_common(TOP_CORRECTIONS)]
            insight.field_accuracy[name] = accurate / seen if seen else 0.0
        return insight

    # ── Lookups ──

    def get_learned_patterns(self, domain: str, field: str | None = None) -> list[LearnedPattern]:
        with self._lock:
            return [
                dataclasses.replace(p)
                for p in self._patterns
                if p.domain == domain and (field is None or p.field == field)
            ]

    def get_domain_insights(self, domain: str) -> DomainInsight | None:
        with self._lock:
            insight = self._insights.get(domain)
            return dataclasses.replace(insight) if insight else None

    def apply_learned_patterns(self, domain: str, data: ExtractedJobRecord) -> ExtractedJobRecord:
        """Copy of *data* with confident learned corrections applied.

        A field is replaced only when its value equals a pattern's original
        value exactly and that pattern's confidence is above the threshold.
        """
        improved = data.copy()
        for pattern in self.get_learned_patterns(domain):
            current = improved.get(pattern.field)
            if current is None or str(current).strip() != pattern.original_pattern:
                continue
            if pattern.confidence > APPLY_THRESHOLD:
                setattr(improved, pattern.field, pattern.corrected_pattern)
                log.info(
                    "Applied learned %s correction for %s: %r → %r",
                    pattern.field, domain, pattern.original_pattern, pattern.corrected_pattern,
                )
        return improved

    def get_extraction_suggestions(self, domain: str) -> dict[str, Any]:
        insight = self.get_domain_insights(domain)
        if insight is None:
            return {"field_suggestions": {}, "accuracy_predictions": {}, "recommended_strategy": "universal"}
        suggestions = {
            name: [c.split(" -> ", 1)[1] for c in corrections]
            for name, corrections in insight.common_corrections.items()
        }
        accuracy = dict(insight.field_accuracy)
        avg = sum(accuracy.values()) / len(accuracy) if accuracy else 0.0
        if avg > 0.8:
            strategy = "portal-specific"
        elif avg > 0.6:
            strategy = "pattern-matching"
        else:
            strategy = "universal"
        return {"field_suggestions": suggestions, "accuracy_predictions": accuracy, "recommended_strategy": strategy}

    def get_learning_stats(self) -> dict[str, Any]:
        with self._lock:
            domains = {f.domain for f in self._feedback}
            per_domain = [
                sum(i.field_accuracy.values()) / len(i.field_accuracy)
                for i in self._insights.values()
                if i.field_accuracy
            ]
            return {
                "total_feedback": len(self._feedback),
                "domains_learned": len(domains),
                "patterns_learned": len(self._patterns),
                "average_accuracy": sum(per_domain) / len(per_domain) if per_domain else 0.0,
            }

    # ── Import / export ──

    def export_learning_data(self) -> dict[str, list[dict[str, Any]]]:
        with self._lock:
            return {
                "feedback": [dataclasses.asdict(f) for f in self._feedback],
                "patterns": [dataclasses.asdict(p) for p in self._patterns],
                "insights": [dataclasses.asdict(i) for i in self._insights.values()],
            }

    def import_learning_data(self, data: Mapping[str, Any]) -> None:
        """Replace the store's state; insights are rebuilt from the feedback log."""
        feedback = [UserFeedback(**f) for f in data.get("feedback", [])]
        patterns = [LearnedPattern(**p) for p in data.get("patterns", [])]
        with self._lock:
            self._feedback = feedback
            self._patterns = patterns
            self._insights = {d: self._build_insight(d) for d in dict.fromkeys(f.domain for f in feedback)}
        log.info("Imported %d feedback event(s), %d pattern(s)", len(feedback), len(patterns))

    def clear_learning_data(self) -> None:
        with self._lock:
            self._feedback.clear()
            self._patterns.clear()
            self._insights.clear()

    def save(self, path: Path | None = None) -> Path:
        path = Path(path or LEARNING_PATH)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(self.export_learning_data(), indent=2), encoding="utf-8")
        log.debug("Saved learning data → %s", path)
        return path

    def load(self, path: Path | None = None) -> bool:
        path = Path(path or LEARNING_PATH)
        if not path.exists():
            return False
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            self.import_learning_data(data)
        except (ValueError, TypeError) as exc:
            log.warning("Ignoring unreadable learning data in %s: %s", path.name, exc)
            return False
        return True
