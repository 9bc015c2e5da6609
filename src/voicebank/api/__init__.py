"""HTTP API for voicebank."""
