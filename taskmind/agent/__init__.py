"""Agent orchestrator and conversation threads."""
