"""Domain services for the expense approval workflow."""
