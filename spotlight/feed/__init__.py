"""Feed ranking: candidate sources, scoring and blending."""
