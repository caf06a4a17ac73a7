"""Drug identity and candidate package resolution."""
