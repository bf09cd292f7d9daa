"""Distribution and connectivity measurements against configured targets."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
import math

import networkx as nx

from loreweave.domain.enums import PROMINENCE_ORDER
from loreweave.domain.schema import DomainSchema
from loreweave.graph.store import GraphStore
from loreweave.util.numbers import mean


@dataclass
class GraphMetrics:
    clusters: int = 0
    avg_cluster_size: float = 0.0
    isolated_nodes: int = 0
    isolated_node_ratio: float = 0.0
    avg_degree: float = 0.0
    density: float = 0.0

    def to_dict(self) -> dict:
        return {
            "clusters": self.clusters,
            "avgClusterSize": self.avg_cluster_size,
            "isolatedNodes": self.isolated_nodes,
            "isolatedNodeRatio": self.isolated_node_ratio,
            "avgDegree": self.avg_degree,
            "density": self.density,
        }


@dataclass
class DistributionStats:
    entity_counts: dict[str, int] = field(default_factory=dict)
    entity_deviation: float = 0.0
    prominence_ratios: dict[str, float] = field(default_factory=dict)
    prominence_deviation: float = 0.0
    relationship_ratios: dict[str, float] = field(default_factory=dict)
    relationship_diversity: float = 0.0
    relationship_deviation: float = 0.0
    graph: GraphMetrics = field(default_factory=GraphMetrics)
    connectivity_deviation: float = 0.0

    @property
    def overall_deviation(self) -> float:
        return mean(
            [
                self.entity_deviation,
                self.prominence_deviation,
                self.relationship_deviation,
                self.connectivity_deviation,
            ]
        )

    def to_dict(self) -> dict:
        return {
            "entityCounts": dict(self.entity_counts),
            "entityDeviation": self.entity_deviation,
            "prominenceRatios": dict(self.prominence_ratios),
            "prominenceDeviation": self.prominence_deviation,
            "relationshipTypeRatios": dict(self.relationship_ratios),
            "relationshipDiversity": self.relationship_diversity,
            "relationshipDeviation": self.relationship_deviation,
            "graphMetrics": self.graph.to_dict(),
            "connectivityDeviation": self.connectivity_deviation,
            "overallDeviation": self.overall_deviation,
        }


def graph_metrics(store: GraphStore) -> GraphMetrics:
    """Connectivity of the live graph, treating edges as undirected."""
    undirected = nx.Graph(store.graph)
    total = undirected.number_of_nodes()
    if total == 0:
        return GraphMetrics()
    sizes = [len(component) for component in nx.connected_components(undirected)]
    isolated = nx.number_of_isolates(undirected)
    return GraphMetrics(
        clusters=len(sizes),
        avg_cluster_size=mean(sizes),
        isolated_nodes=isolated,
        isolated_node_ratio=isolated / total,
        avg_degree=store.graph.number_of_edges() * 2 / total,
        density=nx.density(undirected),
    )


def shannon_entropy(ratios: dict[str, float]) -> float:
    return -sum(ratio * math.log2(ratio) for ratio in ratios.values() if ratio > 0)


def measure(store: GraphStore, domain: DomainSchema) -> DistributionStats:
    entities = store.get_entities()
    total = len(entities)
    stats = DistributionStats(graph=graph_metrics(store))
    stats.entity_counts = dict(Counter(f"{entity.kind}:{entity.subtype}" for entity in entities))

    prominence = Counter(str(entity.prominence) for entity in entities)
    stats.prominence_ratios = {
        str(level): (prominence.get(str(level), 0) / total if total else 0.0) for level in PROMINENCE_ORDER
    }

    live = store.get_relationships(include_historical=False)
    kinds = Counter(rel.kind for rel in live)
    stats.relationship_ratios = {kind: count / len(live) for kind, count in kinds.items()}
    stats.relationship_diversity = shannon_entropy(stats.relationship_ratios)

    targets = domain.distribution_targets
    if targets is None or total == 0:
        return stats

    deviations = []
    for kind, subtypes in targets.entities.items():
        for subtype, target in subtypes.items():
            wanted = domain.scaled(target.target)
            if wanted > 0:
                deviations.append(abs(store.get_entity_count(kind, subtype) - wanted) / wanted)
    stats.entity_deviation = mean(deviations)

    stats.prominence_deviation = mean(
        [abs(stats.prominence_ratios.get(str(level), 0.0) - ratio) for level, ratio in targets.prominence.items()]
    )

    max_entropy = math.log2(len(kinds)) if len(kinds) > 1 else 0.0
    stats.relationship_deviation = 1 - stats.relationship_diversity / max_entropy if max_entropy > 0 else 0.0
    if len(kinds) < targets.min_relationship_types:
        stats.relationship_deviation = max(
            stats.relationship_deviation, 1 - len(kinds) / targets.min_relationship_types
        )

    cluster_deviation = abs(stats.graph.clusters - targets.target_clusters) / max(1, targets.target_clusters)
    isolated_deviation = max(0.0, stats.graph.isolated_node_ratio - targets.max_isolated_ratio)
    stats.connectivity_deviation = (cluster_deviation + isolated_deviation) / 2
    return stats
