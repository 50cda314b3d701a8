"""Pure scheduling and progress engine for construction plans."""
