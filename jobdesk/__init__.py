"""JobDesk maintenance ticketing service."""
