"""HomeMatch couples backend."""
