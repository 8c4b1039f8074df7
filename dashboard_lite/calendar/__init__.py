"""Calendar feed fetching, parsing, merging and day grouping."""
