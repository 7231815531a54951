"""End-to-end CLI tests against a real SQLite state file."""
