from memweave.models.memory import MemoryRecord, Trajectory
from memweave.models.pattern import NeuralPattern, CompressedPattern
from memweave.models.graph import Edge, Agent, Stat

__all__ = [
    "MemoryRecord", "Trajectory",
    "NeuralPattern", "CompressedPattern",
    "Edge", "Agent", "Stat",
]

TABLES = (
    "memories",
    "trajectories",
    "neural_patterns",
    "edges",
    "agents",
    "compressed_patterns",
    "stats",
)

# Columns the tooling expects; older stores may lack some of them.
REQUIRED_COLUMNS = {
    "memories": ["id", "memory_type", "content", "embedding", "metadata", "timestamp"],
    "neural_patterns": ["id", "content", "category", "embedding", "confidence", "usage"],
    "compressed_patterns": ["id", "layer", "data", "compression_ratio", "created_at"],
    "edges": ["id", "source", "target", "weight", "data"],
}
