"""Command-line front end for the cue engine."""
