"""AgentMesh: multi-agent registry and collaboration coordination."""

__version__ = "1.0.0"
