"""Command-line tools for FlexiBase."""
