"""CueScore CLI subcommands."""
