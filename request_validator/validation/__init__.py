"""Rule parsing, built-in checks and the rule engine."""
