"""Client detection, reconciliation and connection verification for figsetup."""
