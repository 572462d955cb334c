"""Python entrypoints referenced by toolpack definitions."""
