"""Console and logging helpers for the :mod:`studymatic` CLI."""
