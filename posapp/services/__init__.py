"""Domain services for the POS ledger. Each public function is one operation."""
