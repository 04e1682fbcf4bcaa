"""CSV export of verified batches and its audit manifest."""
