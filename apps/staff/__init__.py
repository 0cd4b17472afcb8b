"""Staff members, their services and weekly schedules."""
