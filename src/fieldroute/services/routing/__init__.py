"""Route optimization, sequencing and timing."""
