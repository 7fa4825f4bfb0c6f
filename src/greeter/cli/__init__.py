"""Client-side command-line tools for the greeting program."""
