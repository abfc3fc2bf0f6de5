"""Domain records: employees and tenant configuration."""
