"""Book vision service: AI-assisted book metadata extraction from cover photos."""
