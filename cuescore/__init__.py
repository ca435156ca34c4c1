"""CueScore: generative cue scheduling for live group improvisation."""
