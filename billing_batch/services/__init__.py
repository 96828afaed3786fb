"""billing_batch.services -- batch executor and in-process scheduler."""
