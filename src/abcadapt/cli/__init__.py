"""Command line interface for abcadapt."""
