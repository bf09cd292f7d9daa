"""Structural checks over a finished world."""

from __future__ import annotations

from dataclasses import dataclass, field

from loreweave.graph.store import GraphStore


@dataclass
class CheckResult:
    name: str
    passed: bool
    details: str = ""

    def to_dict(self) -> dict:
        return {"name": self.name, "passed": self.passed, "details": self.details}


@dataclass
class ValidationReport:
    results: list[CheckResult] = field(default_factory=list)

    @property
    def passed(self) -> int:
        return sum(1 for result in self.results if result.passed)

    @property
    def failed(self) -> int:
        return len(self.results) - self.passed

    def to_dict(self) -> dict:
        return {
            "totalChecks": len(self.results),
            "passed": self.passed,
            "failed": self.failed,
            "results": [result.to_dict() for result in self.results],
        }


def _dangling_endpoints(store: GraphStore) -> CheckResult:
    missing = [
        f"{rel.kind}:{rel.src}->{rel.dst}"
        for rel in store.get_relationships()
        if not store.has_entity(rel.src) or not store.has_entity(rel.dst)
    ]
    return CheckResult(
        name="No dangling relationship endpoints",
        passed=not missing,
        details=", ".join(missing[:5]),
    )


def _links_consistent(store: GraphStore) -> CheckResult:
    broken: list[str] = []
    for rel in store.get_relationships():
        for endpoint in (rel.src, rel.dst):
            entity = store.get_entity(endpoint)
            if entity is not None and not any(link is rel for link in entity.links):
                broken.append(f"{endpoint} missing {rel.kind}")
    return CheckResult(
        name="Entity link caches match the relationship list",
        passed=not broken,
        details=", ".join(broken[:5]),
    )


def _terminal_entities_detached(store: GraphStore) -> CheckResult:
    domain = store.domain
    offenders: list[str] = []
    if domain is not None:
        for entity in store.get_entities():
            if domain.is_terminal(entity.kind, entity.status) and entity.kind != "era":
                if store.get_entity_relationships(entity.id):
                    offenders.append(entity.id)
    return CheckResult(
        name="Terminal entities have no live relationships",
        passed=not offenders,
        details=", ".join(offenders[:5]),
    )


def _vocabulary_respected(store: GraphStore) -> CheckResult:
    domain = store.domain
    offenders: list[str] = []
    if domain is not None:
        for rel in store.get_relationships():
            definition = domain.relationship_kind(rel.kind)
            src = store.get_entity(rel.src)
            dst = store.get_entity(rel.dst)
            if definition is None or src is None or dst is None:
                offenders.append(rel.kind)
            elif not definition.allows(src.kind, dst.kind):
                offenders.append(f"{rel.kind}({src.kind}->{dst.kind})")
    return CheckResult(
        name="Relationships follow the declared vocabulary",
        passed=not offenders,
        details=", ".join(sorted(set(offenders))[:5]),
    )


def validate_world(store: GraphStore) -> ValidationReport:
    return ValidationReport(
        results=[
            _dangling_endpoints(store),
            _links_consistent(store),
            _terminal_entities_detached(store),
            _vocabulary_respected(store),
        ]
    )
