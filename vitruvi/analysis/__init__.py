"""Photo analysis: vision adapter, normalizer and the analyze workflow."""
