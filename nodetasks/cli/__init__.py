"""Command-line interface for NodeTasks."""
