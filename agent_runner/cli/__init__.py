"""Command-line interface for claude-agent-runner."""
