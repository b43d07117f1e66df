"""Core building blocks for add-on stack management."""
