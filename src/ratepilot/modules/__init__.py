"""Engine components."""
