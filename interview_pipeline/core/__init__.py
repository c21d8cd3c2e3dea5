"""Stage catalog, transition engine and pipeline errors."""
