"""Package spec files — selection rules and whitelisted fields."""
