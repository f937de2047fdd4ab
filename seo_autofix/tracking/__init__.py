"""Change tracking: batches of fixes recorded as reversible git history, one repository per site."""
